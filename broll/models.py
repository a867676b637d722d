"""Data model shared by the transcription, enrichment and playback stages."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class FetchStatus(str, Enum):
    IDLE = "idle"
    SUGGESTING = "suggesting"
    FETCHING = "fetching"
    FETCHED = "fetched"
    FAILED_SUGGESTION = "failed_suggestion"
    FAILED_FETCH = "failed_fetch"
    NO_IMAGE_FOUND = "no_image_found"


class JobStatus(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    QUEUED = "queued"
    PROCESSING = "processing"
    TRANSCRIBING = "transcribing"
    COMPLETED = "completed"
    ERROR = "error"

    @classmethod
    def parse(cls, value: Optional[str]) -> "JobStatus":
        """Maps a status string reported by the service. Unknown values count as errors."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.ERROR


# Statuses that keep the poll loop alive.
POLLING_STATUSES = (JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.TRANSCRIBING)
TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.ERROR, JobStatus.IDLE)


class Stage(str, Enum):
    IDLE = "idle"
    READY = "ready"
    LOADING_PRESET = "loading_preset"
    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"
    SEGMENTING = "segmenting"
    SUGGESTING = "suggesting"
    FETCHING = "fetching"
    COMPLETE = "complete"
    CONFIG_ERROR = "config_error"
    ERROR = "error"


_STAGE_LABELS = {
    Stage.IDLE: "Idle",
    Stage.READY: "Ready to process video",
    Stage.LOADING_PRESET: "Loading preset",
    Stage.UPLOADING: "Uploading audio",
    Stage.TRANSCRIBING: "Transcribing",
    Stage.SEGMENTING: "Splitting transcript into sentences",
    Stage.SUGGESTING: "Suggesting visuals",
    Stage.FETCHING: "Fetching images",
    Stage.COMPLETE: "Visual processing complete",
    Stage.CONFIG_ERROR: "Configuration error",
    Stage.ERROR: "Error",
}


@dataclass(frozen=True)
class StatusRecord:
    """The single rolling status line, kept structured until it is rendered."""
    stage: Stage
    detail: Optional[str] = None

    def render(self) -> str:
        label = _STAGE_LABELS[self.stage]
        if self.detail:
            return f"{label}: {self.detail}"
        return f"{label}."

    @property
    def is_error(self) -> bool:
        return self.stage in (Stage.ERROR, Stage.CONFIG_ERROR)


@dataclass(frozen=True)
class Word:
    """A single transcribed word. Times are in milliseconds."""
    text: str
    start_ms: float
    end_ms: float
    confidence: Optional[float] = None


@dataclass
class Segment:
    """A sentence-level slice of the transcript. Times are in seconds."""
    text: str
    start_time: float
    end_time: float
    words: List[Word]
    visual_query: Optional[str] = None
    fetch_status: FetchStatus = FetchStatus.IDLE

    def contains(self, t: float) -> bool:
        return self.start_time <= t < self.end_time

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "visual_query": self.visual_query,
            "fetch_status": self.fetch_status.value,
            "word_count": len(self.words),
        }


@dataclass(frozen=True)
class ImageRecord:
    source_url: Optional[str] = None
    user_url: Optional[str] = None

    @property
    def display_url(self) -> Optional[str]:
        return self.user_url or self.source_url or None

    @classmethod
    def from_source(cls, url: str) -> "ImageRecord":
        return cls(source_url=url)

    def with_override(self, url: Optional[str]) -> "ImageRecord":
        """Returns a copy with the user override set. Blank input clears the override."""
        cleaned = (url or "").strip() or None
        return ImageRecord(source_url=self.source_url, user_url=cleaned)

    def to_dict(self) -> dict:
        return {"source_url": self.source_url, "user_url": self.user_url, "display_url": self.display_url}


ImageMap = Dict[int, Optional[ImageRecord]]


@dataclass
class Job:
    """One transcription job. Superseded (never reused) by the next submission."""
    id: Optional[str] = None
    status: JobStatus = JobStatus.IDLE
    error: Optional[str] = None
    words: Optional[List[Word]] = None
    attempts: int = 0
    done: Optional[asyncio.Future] = field(default=None, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class ResolvedMedia:
    """What an input source resolves to: something to play and something to transcribe."""
    media_source: str
    label: str
    audio_bytes: Optional[bytes] = field(default=None, repr=False)
    audio_url: Optional[str] = None
    warning: Optional[str] = None
