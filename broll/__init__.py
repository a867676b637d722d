# broll/__init__.py

"""
The 'broll' package: transcribe a video, pick a stock image per spoken sentence,
and keep the right image on screen while the video plays.

Key classes and functions from the submodules are exposed at the top level, so
callers can simply `import broll` and use `broll.VisualSession` or
`broll.segment_words_into_sentences`.
"""

# --- Configuration ---
from .config import CONFIG, PRESET_VIDEOS, get_api_key

from .Errors import (
    BRollError,
    ConfigurationError,
    TransportError,
    ServiceError,
    SegmentEnrichmentFailure
)

from .LoggerSetup import setup_logging

# --- Data Model ---
from .models import (
    Word,
    Segment,
    ImageRecord,
    Job,
    JobStatus,
    FetchStatus,
    Stage,
    StatusRecord,
    ResolvedMedia
)

# --- Utility Functions ---
from .utils import timestamp_to_seconds, format_time, log_run_summary

# --- Sentence Segmentation ---
from .TranscriptParser import segment_words_into_sentences, find_active_segment

# --- External Services ---
from .GetTranscript import AssemblyAITranscriber, parse_assemblyai_words
from .ImageSearch import PixabayImageSearch
from .LLM import GeminiKeywordSuggester, parse_suggestion

# --- Input Sources ---
from .VideoIO import FileInput, UrlInput, PresetInput, read_local_media, resolve_input

# --- Processing and Playback ---
from .VisualEnrichment import VisualEnrichmentPipeline, EnrichmentResult
from .JobController import TranscriptionJobController
from .PlaybackSync import PlaybackSynchronizer
from .Session import VisualSession, SessionSnapshot, build_session


# Define the public API of the 'broll' package.
__all__ = [
    # Config
    "CONFIG",
    "PRESET_VIDEOS",
    "get_api_key",
    "setup_logging",
    # Errors
    "BRollError",
    "ConfigurationError",
    "TransportError",
    "ServiceError",
    "SegmentEnrichmentFailure",
    # Models
    "Word",
    "Segment",
    "ImageRecord",
    "Job",
    "JobStatus",
    "FetchStatus",
    "Stage",
    "StatusRecord",
    "ResolvedMedia",
    # Utils
    "timestamp_to_seconds",
    "format_time",
    "log_run_summary",
    # Segmentation
    "segment_words_into_sentences",
    "find_active_segment",
    # Services
    "AssemblyAITranscriber",
    "parse_assemblyai_words",
    "PixabayImageSearch",
    "GeminiKeywordSuggester",
    "parse_suggestion",
    # Inputs
    "FileInput",
    "UrlInput",
    "PresetInput",
    "read_local_media",
    "resolve_input",
    # Processing and playback
    "VisualEnrichmentPipeline",
    "EnrichmentResult",
    "TranscriptionJobController",
    "PlaybackSynchronizer",
    "VisualSession",
    "SessionSnapshot",
    "build_session",
]
