# broll/config.py
import os
from typing import Optional

from dotenv import load_dotenv

from .Errors import ConfigurationError

# Load API keys from a .env file if one is present
load_dotenv()

# --- Static Configuration ---
# All pipeline settings are stored in this dictionary.
CONFIG = {
    # --- Output ---
    "BASE_OUTPUT_DIR": 'output',
    "RUN_SUMMARY_FILENAME": "run_summary.json",

    # --- Sentence Segmentation ---
    # A pause longer than this between two words starts a new sentence.
    "SENTENCE_GAP_MS": 700,

    # --- Transcription (AssemblyAI) ---
    "ASSEMBLYAI_BASE_URL": "https://api.assemblyai.com/v2",
    "FIRST_POLL_DELAY_SEC": 3.0,
    "POLL_INTERVAL_SEC": 7.0,
    "MAX_POLL_ATTEMPTS": 200,
    "HTTP_TIMEOUT_SEC": 60.0,
    "UPLOAD_TIMEOUT_SEC": 300.0,

    # --- Visual Suggestions (Gemini) ---
    "GEMINI_MODEL": "gemini-2.5-flash",
    "GEMINI_TEMPERATURE": 0.4,

    # --- Image Lookup (Pixabay) ---
    "PIXABAY_URL": "https://pixabay.com/api/",
    "PIXABAY_PER_PAGE": 3,
    "PIXABAY_IMAGE_TYPE": "photo",
    "PIXABAY_ORIENTATION": "horizontal",
    "PIXABAY_SAFESEARCH": True,

    # --- Playback ---
    "IMAGE_DISPLAY_DURATION_SEC": 2.5,
    "PRESET_LOAD_DELAY_SEC": 1.0,
}

# Placeholder that ships in example .env files; treated the same as a missing key.
PIXABAY_KEY_PLACEHOLDER = "YOUR_PIXABAY_API_KEY"

PRESET_VIDEOS = [
    {"id": 1, "name": "Preset: Tech Review", "src": "placeholder_tech_review.mp4",
     "description": "A short clip discussing new gadgets."},
    {"id": 2, "name": "Preset: Nature Walk", "src": "placeholder_nature_walk.mp4",
     "description": "Scenic views and commentary on wildlife."},
    {"id": 3, "name": "Preset: Cooking Tutorial", "src": "placeholder_cooking_tutorial.mp4",
     "description": "A quick recipe demonstration."},
    {"id": 4, "name": "Preset: Story Time", "src": "placeholder_story_time.mp4",
     "description": "An engaging narrative for all ages."},
]


def get_api_key(env_name: str, placeholder: Optional[str] = None) -> str:
    """
    Reads an API key from the environment.

    Raises:
        ConfigurationError: If the variable is unset, blank, or still holds the placeholder value.
    """
    value = (os.getenv(env_name) or "").strip()
    if not value or (placeholder and value == placeholder):
        raise ConfigurationError(f"{env_name} not found in environment variables.")
    return value
