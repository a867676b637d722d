import logging
import json
import math
import os
from typing import Union, List, Dict, Any

logger = logging.getLogger(f"broll.{__name__}")


def timestamp_to_seconds(ts_str: Union[str, float, int]) -> float:
    """
    Converts a timestamp string or numerical value into total seconds.

    This function supports various timestamp formats:
    - "HH:MM:SS.ss" (e.g., "01:05:30.123")
    - "MM:SS.ss" (e.g., "05:30.123")
    - "SS.ss" (e.g., "30.123")
    - A raw number (float or int) representing seconds.

    Args:
        ts_str (Union[str, float, int]): The timestamp to convert.

    Returns:
        float: The total number of seconds represented by the timestamp.

    Raises:
        TypeError: If the input `ts_str` is not a string, float, or integer.
        ValueError: If the string format is not recognized or cannot be parsed.
    """
    try:
        # If it's already a number, just return it as a float.
        return float(ts_str)
    except (ValueError, TypeError):
        pass

    if not isinstance(ts_str, str):
        raise TypeError(f"Invalid type for timestamp: Expected str, float, or int, but got {type(ts_str)}")

    parts: List[str] = ts_str.strip().split(':')
    try:
        if len(parts) == 3:
            return int(parts[0]) * 3600 + int(parts[1]) * 60 + float(parts[2])
        if len(parts) == 2:
            return int(parts[0]) * 60 + float(parts[1])
    except ValueError as e:
        raise ValueError(f"Invalid timestamp '{ts_str}': {e}") from e
    raise ValueError(f"Invalid timestamp format: '{ts_str}'. Expected HH:MM:SS.ss, MM:SS.ss, or SS.ss.")


def format_time(seconds: float) -> str:
    """Formats seconds as m:ss for status lines. Negative or NaN input gives '0:00'."""
    if seconds is None or math.isnan(seconds) or seconds < 0:
        return "0:00"
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes}:{secs:02d}"


def log_run_summary(run_output_dir: str, summary: Dict[str, Any], filename: str = "run_summary.json") -> str:
    """
    Saves a JSON summary of a processing run (status, segments, images).

    Args:
        run_output_dir (str): Directory for the summary file. Created if missing.
        summary (Dict[str, Any]): JSON-friendly run data.
        filename (str): Name of the summary file.

    Returns:
        str: Path of the written file.
    """
    summary_path: str = os.path.join(run_output_dir, filename)
    os.makedirs(run_output_dir, exist_ok=True)
    with open(summary_path, 'w', encoding='utf-8') as f:
        # Enums and other non-JSON values are written as strings
        json.dump(summary, f, indent=4, default=lambda o: getattr(o, 'value', str(o)))
    logger.info(f"📋 Run summary saved to {summary_path}")
    return summary_path
