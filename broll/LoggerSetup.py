import logging
import os
import sys
from typing import Optional


def setup_logging(run_output_dir: Optional[str] = None) -> logging.Logger:
    """
    Configures the logging system for the entire application.

    This sets up a logger that outputs:
    - INFO level and above to the console (for clean user feedback).
    - DEBUG level and above to a dedicated log file inside the run's output directory,
      when one is given.

    Args:
        run_output_dir (Optional[str]): Directory where 'broll.log' will be created.
                                        If None, only console logging is configured.

    Returns:
        logging.Logger: The configured 'broll' package logger.
    """
    logger = logging.getLogger('broll')
    logger.setLevel(logging.DEBUG)

    # Clear existing handlers to prevent duplicate logs if called multiple times
    if logger.hasHandlers():
        logger.handlers.clear()

    # --- Console Handler (high-level feedback) ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    logger.addHandler(console_handler)

    if not run_output_dir:
        return logger

    # --- File Handler (detailed debugging) ---
    log_file_path = os.path.join(run_output_dir, 'broll.log')
    try:
        os.makedirs(run_output_dir, exist_ok=True)
        # UTF-8 so emojis in status lines survive on every platform
        file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        logger.addHandler(file_handler)
        logger.info(f"Logging initialized. Detailed log file at: {log_file_path}")
    except OSError as e:
        logger.error(f"Failed to set up file logging to {log_file_path}: {e}")
        logger.info("Proceeding without file logging. All logs will go to console.")
    return logger
