import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional

from .config import CONFIG
from .Errors import ConfigurationError
from .JobController import TranscriptionJobController
from .models import (FetchStatus, ImageMap, ImageRecord, Job, JobStatus, POLLING_STATUSES,
                     ResolvedMedia, Segment, Stage, StatusRecord)
from .PlaybackSync import PlaybackSynchronizer, Scheduler
from .TranscriptParser import find_active_segment, segment_words_into_sentences
from .VideoIO import InputSource, PresetInput, find_preset, resolve_input, resolve_remote_audio
from .VisualEnrichment import VisualEnrichmentPipeline

logger = logging.getLogger(f"broll.{__name__}")

IDLE_STATUS = StatusRecord(Stage.IDLE, "Upload video or select a preset to start.")


@dataclass
class SessionSnapshot:
    status: StatusRecord
    job_status: JobStatus
    segments: List[Segment]
    images: ImageMap
    active_index: int
    active_image_url: Optional[str]
    displayed_image_url: Optional[str]
    processing: bool
    all_data_processed: bool
    failures: List[str] = field(default_factory=list)


class VisualSession:
    """
    Holds everything about the current video: the chosen input, the transcription
    job, the segments with their images, and playback state.

    State is only reset by two named events: selecting a new input and starting
    a new processing round. Each round gets a number; results from an older
    round are dropped when they arrive.
    """

    def __init__(self, transcriber=None, suggester=None, image_search=None,
                 config: Optional[Dict] = None, scheduler: Optional[Scheduler] = None,
                 url_resolver: Callable[[str], str] = resolve_remote_audio):
        self.config = config or CONFIG
        self._transcriber = transcriber
        self._suggester = suggester
        self._image_search = image_search
        self._url_resolver = url_resolver

        self._controller = TranscriptionJobController(transcriber, self.config, on_update=self._on_job_update)
        self._sync = PlaybackSynchronizer(
            display_duration=self.config["IMAGE_DISPLAY_DURATION_SEC"],
            scheduler=scheduler,
            on_active_index=lambda _index: self._emit(),
            on_image=lambda _url: self._emit(),
        )

        self._source: Optional[InputSource] = None
        self._media: Optional[ResolvedMedia] = None
        self._segments: List[Segment] = []
        self._images: ImageMap = {}
        self._failures: List[str] = []
        self._status = IDLE_STATUS
        self._processing = False
        self._round = 0
        self._input_generation = 0
        self._listeners: List[Callable[[SessionSnapshot], None]] = []

    # --- observers ---

    def subscribe(self, callback: Callable[[SessionSnapshot], None]) -> Callable[[], None]:
        """Registers an observer. Returns a function that unsubscribes it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            status=self._status,
            job_status=self.job_status,
            segments=[replace(s) for s in self._segments],
            images=dict(self._images),
            active_index=self._sync.active_index,
            active_image_url=self._sync.active_image_url,
            displayed_image_url=self._sync.displayed_image_url,
            processing=self._processing,
            all_data_processed=self.all_data_processed,
            failures=list(self._failures),
        )

    def _emit(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)

    def _set_status(self, stage: Stage, detail: Optional[str] = None) -> None:
        self._status = StatusRecord(stage, detail)
        log = logger.error if self._status.is_error else logger.info
        log(self._status.render())
        self._emit()

    # --- read accessors ---

    @property
    def status(self) -> StatusRecord:
        return self._status

    @property
    def source(self) -> Optional[InputSource]:
        return self._source

    @property
    def media(self) -> Optional[ResolvedMedia]:
        return self._media

    @property
    def job(self) -> Job:
        return self._controller.job

    @property
    def job_status(self) -> JobStatus:
        return self._controller.job.status

    @property
    def segments(self) -> List[Segment]:
        return list(self._segments)

    @property
    def images(self) -> ImageMap:
        return dict(self._images)

    @property
    def active_index(self) -> int:
        return self._sync.active_index

    @property
    def active_image_url(self) -> Optional[str]:
        return self._sync.active_image_url

    @property
    def displayed_image_url(self) -> Optional[str]:
        return self._sync.displayed_image_url

    @property
    def processing(self) -> bool:
        return self._processing

    @property
    def playback(self) -> PlaybackSynchronizer:
        return self._sync

    @property
    def all_data_processed(self) -> bool:
        return self.job_status == JobStatus.COMPLETED and not self._processing and len(self._segments) > 0

    @property
    def can_start_playback(self) -> bool:
        return self._media is not None and self.all_data_processed

    def missing_services(self) -> List[str]:
        missing = []
        if self._transcriber is None:
            missing.append("AssemblyAI API Key missing")
        if self._suggester is None:
            missing.append("Gemini API Key missing")
        if self._image_search is None:
            missing.append("Pixabay API Key missing or invalid")
        return missing

    # --- events ---

    async def select_input(self, source: InputSource) -> None:
        """
        Makes `source` the current input and clears everything derived from the old one.

        Presets are loaded after a short simulated delay; if another input is selected
        meanwhile, the preset load is abandoned.

        Raises:
            ValueError: For an unknown preset id. The current input is kept.
        """
        if isinstance(source, PresetInput) and find_preset(source.preset_id) is None:
            self._set_status(Stage.ERROR, "Invalid preset number. Please choose from available presets.")
            raise ValueError(f"Unknown preset id: {source.preset_id}")

        self._input_generation += 1
        generation = self._input_generation
        self._reset_for_new_input()

        if isinstance(source, PresetInput):
            preset = find_preset(source.preset_id)
            self._set_status(Stage.LOADING_PRESET, f"Loading preset '{preset['name']}'...")
            await asyncio.sleep(self.config["PRESET_LOAD_DELAY_SEC"])
            if generation != self._input_generation:
                logger.debug(f"Preset '{preset['name']}' load superseded by a newer input.")
                return

        media = await asyncio.to_thread(resolve_input, source, self._url_resolver)
        if generation != self._input_generation:
            return
        self._source = source
        self._media = media

        missing = self.missing_services()
        if missing:
            self._set_status(Stage.CONFIG_ERROR, ". Also, ".join(missing) + ".")
        elif isinstance(source, PresetInput):
            self._set_status(Stage.READY, f"Preset '{find_preset(source.preset_id)['name']}' loaded.")
        else:
            self._set_status(Stage.READY, media.warning)

    async def process(self) -> bool:
        """
        Runs one processing round: transcribe, split into sentences, enrich with images.

        Returns:
            bool: True if the round finished (even with per-segment failures), False if it
                  failed, was superseded, or there was no input.

        Raises:
            ConfigurationError: If a required service has no credentials. Nothing is started.
        """
        if self._media is None:
            self._set_status(Stage.ERROR, "Main video is missing. Please upload or select a preset.")
            return False

        missing = self.missing_services()
        if missing:
            message = ". Also, ".join(missing) + "."
            self._set_status(Stage.CONFIG_ERROR, message)
            raise ConfigurationError(message)
        pipeline = VisualEnrichmentPipeline(self._suggester, self._image_search)

        self._round += 1
        round_id = self._round
        self._reset_for_new_round()
        self._processing = True
        self._set_status(Stage.UPLOADING, f"Uploading {self._media.label}...")

        job = await self._controller.submit(self._media)
        words = await self._controller.wait(job)
        if round_id != self._round:
            return False

        if words is None:
            self._processing = False
            if job.status == JobStatus.ERROR:
                self._set_status(Stage.ERROR, job.error)
            else:
                self._set_status(Stage.IDLE, "Transcription cancelled.")
            return False

        self._set_status(Stage.SEGMENTING, f"{len(words)} words")
        segments = segment_words_into_sentences(words, self.config["SENTENCE_GAP_MS"])
        if not segments:
            self._processing = False
            self._set_status(Stage.COMPLETE, "Transcription complete but no words found.")
            return True
        self._segments = segments
        self._emit()

        result = await pipeline.run(
            segments,
            publish=lambda segs, images, index: self._on_enrichment_progress(round_id, segs, images, index),
            is_current=lambda: round_id == self._round,
        )
        if round_id != self._round or not result.completed:
            return False

        self._segments = result.segments
        self._images = result.images
        self._failures = [str(f) for f in result.failures]
        self._processing = False
        self._sync.load(self._segments, self._images, data_ready=self.all_data_processed)
        fetched = sum(1 for s in self._segments if s.fetch_status == FetchStatus.FETCHED)
        self._set_status(Stage.COMPLETE, f"{fetched}/{len(self._segments)} segments have images.")
        return True

    def override_image(self, segment_index: int, url: Optional[str]) -> Optional[ImageRecord]:
        """
        Sets a user image URL for a segment. A blank URL removes the override, falling
        back to the automatically fetched image when there is one.

        Raises:
            IndexError: If the segment does not exist.
        """
        if not 0 <= segment_index < len(self._segments):
            raise IndexError(f"No segment {segment_index} (have {len(self._segments)}).")

        existing = self._images.get(segment_index) or ImageRecord()
        record = existing.with_override(url)
        self._images[segment_index] = record
        logger.info(f"Segment {segment_index + 1} image set to {record.display_url or 'none'}.")
        self._sync.update_images(self._images)
        self._emit()
        return record

    def image_at(self, t: float) -> Optional[str]:
        """Display URL of the segment playing at time `t`, regardless of playback state."""
        index = find_active_segment(self._segments, t)
        if index < 0:
            return None
        record = self._images.get(index)
        return record.display_url if record else None

    # --- playback host notifications (ignored until all data is processed) ---

    def seek(self, t: float) -> int:
        if not self.all_data_processed:
            return -1
        self._sync.seek(t)
        return self._sync.active_index

    def on_time_update(self, t: float) -> Optional[int]:
        if not self.all_data_processed:
            return None
        return self._sync.on_time_update(t)

    def on_play(self) -> bool:
        if not self.can_start_playback:
            return False
        self._sync.on_play()
        self._emit()
        return True

    def on_pause(self) -> None:
        self._sync.on_pause()
        self._emit()

    def on_ended(self) -> None:
        self._sync.on_ended()
        self._emit()

    def teardown(self) -> None:
        """Cancels the poll timer and the image timer and drops any running round."""
        self._round += 1
        self._input_generation += 1
        self._controller.cancel()
        self._sync.cancel_timers()
        self._processing = False

    # --- internals ---

    def _reset_for_new_input(self) -> None:
        self._round += 1
        self._controller.cancel()
        self._source = None
        self._media = None
        self._clear_results()

    def _reset_for_new_round(self) -> None:
        self._controller.cancel()
        self._clear_results()

    def _clear_results(self) -> None:
        self._segments = []
        self._images = {}
        self._failures = []
        self._processing = False
        self._sync.reset()

    def _on_job_update(self, job: Job) -> None:
        if not self._controller.is_current(job) or not self._processing:
            return
        if job.status in POLLING_STATUSES:
            short_id = (job.id or '')[:8]
            self._set_status(Stage.TRANSCRIBING, f"Status - {job.status.value} (ID: {short_id}...)")
        else:
            self._emit()

    def _on_enrichment_progress(self, round_id: int, segments: List[Segment], images: ImageMap, index: int) -> None:
        if round_id != self._round:
            return
        self._segments = segments
        self._images = images
        status = segments[index].fetch_status
        total = len(segments)
        if status == FetchStatus.SUGGESTING:
            self._set_status(Stage.SUGGESTING, f"segment {index + 1}/{total}")
        elif status == FetchStatus.FETCHING:
            self._set_status(Stage.FETCHING, f"segment {index + 1}/{total} ('{segments[index].visual_query}')")
        else:
            self._emit()


def build_session(config: Optional[Dict] = None, scheduler: Optional[Scheduler] = None) -> VisualSession:
    """
    Creates a session wired to AssemblyAI, Gemini and Pixabay using keys from the environment.

    A service whose key is missing is left out; the session reports it as a
    configuration error when processing starts.
    """
    from .GetTranscript import AssemblyAITranscriber
    from .ImageSearch import PixabayImageSearch
    from .LLM.simpleLlm import GeminiKeywordSuggester

    services = {}
    for name, factory in (("transcriber", AssemblyAITranscriber),
                          ("suggester", GeminiKeywordSuggester),
                          ("image_search", PixabayImageSearch)):
        try:
            services[name] = factory()
        except ConfigurationError as e:
            logger.error(f"❌ {e}")
            services[name] = None

    return VisualSession(config=config, scheduler=scheduler, **services)
