import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

from .config import CONFIG
from .Errors import ConfigurationError, ServiceError, TransportError
from .models import Job, JobStatus, POLLING_STATUSES, ResolvedMedia, Word

logger = logging.getLogger(f"broll.{__name__}")


class TranscriptionJobController:
    """
    Drives one transcription job at a time through the service:
    idle -> uploading -> queued -> processing/transcribing -> completed | error.

    Polling runs on a single timer handle. Starting a new job (or cancelling)
    drops that handle first, so there is never more than one pending poll. A
    status reply that arrives for a job that is no longer current is discarded.
    In-flight HTTP calls are not interrupted.
    """

    def __init__(self, transcriber, config: Optional[Dict] = None,
                 on_update: Optional[Callable[[Job], None]] = None):
        self._transcriber = transcriber
        self._config = config or CONFIG
        self._on_update = on_update
        self._job = Job()
        self._poll_handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def job(self) -> Job:
        return self._job

    @property
    def has_pending_poll(self) -> bool:
        return self._poll_handle is not None

    def is_current(self, job: Job) -> bool:
        return job is self._job

    async def submit(self, media: ResolvedMedia) -> Job:
        """
        Starts a new job for the resolved media, cancelling any previous one.

        Uploads the audio bytes when the media carries them, otherwise submits its
        remote URL directly. Upload or submit failures move the job to 'error'.

        Returns:
            Job: The new job. Await `wait(job)` for its words.
        """
        self.cancel()
        if self._transcriber is None:
            raise ConfigurationError("ASSEMBLYAI_API_KEY not configured: no transcription service available.")

        job = Job(status=JobStatus.UPLOADING)
        job.done = asyncio.get_running_loop().create_future()
        self._job = job
        self._notify(job)

        try:
            audio_url = media.audio_url
            if media.audio_bytes is not None:
                logger.info(f"AssemblyAI: Uploading {media.label}...")
                audio_url = await self._transcriber.upload(media.audio_bytes)
                if not self.is_current(job):
                    return job
                logger.info(f"AssemblyAI: {media.label} uploaded. Submitting for transcription...")
            if not audio_url:
                raise TransportError("Nothing to transcribe: no audio data or URL for this input.")
            reply = await self._transcriber.submit(audio_url)
        except (TransportError, ServiceError) as e:
            if self.is_current(job):
                self._fail(job, str(e))
            return job

        if not self.is_current(job):
            logger.debug("Submission finished after the job was superseded. Ignoring.")
            return job

        job.id = reply['id']
        job.status = JobStatus.parse(reply.get('status'))
        self._notify(job)

        if job.status in POLLING_STATUSES or job.status == JobStatus.COMPLETED:
            self._schedule_poll(job, self._config["FIRST_POLL_DELAY_SEC"])
        else:
            self._fail(job, reply.get('error') or f"Unexpected status after submit: {job.status.value}")
        return job

    async def wait(self, job: Job) -> Optional[List[Word]]:
        """Waits until the job finishes. Returns its words, or None on error or cancellation."""
        if job.done is None:
            return job.words
        return await asyncio.shield(job.done)

    async def run(self, media: ResolvedMedia) -> Optional[List[Word]]:
        """Submits and waits in one call."""
        job = await self.submit(media)
        return await self.wait(job)

    def cancel(self) -> None:
        """
        Supersedes the current job: drops the pending poll timer and marks the
        job idle. Replies still in flight for it will be ignored.
        """
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None

        job = self._job
        if not job.is_terminal:
            logger.info(f"Cancelling transcription job {job.id or '(not yet submitted)'}.")
            job.status = JobStatus.IDLE
            self._resolve(job, None)
            self._notify(job)
        self._job = Job()

    def _schedule_poll(self, job: Job, delay: float) -> None:
        if self._poll_handle is not None:
            self._poll_handle.cancel()
        loop = asyncio.get_running_loop()
        self._poll_handle = loop.call_later(delay, self._start_poll, job)

    def _start_poll(self, job: Job) -> None:
        self._poll_handle = None
        if not self.is_current(job):
            return
        task = asyncio.get_running_loop().create_task(self._poll_once(job))
        # Keep a strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _poll_once(self, job: Job) -> None:
        job.attempts += 1
        logger.info(f"AssemblyAI: Checking status (ID: {job.id[:8]}...)")
        try:
            reply = await self._transcriber.get_status(job.id)
        except (TransportError, ServiceError) as e:
            if self.is_current(job):
                self._fail(job, f"AssemblyAI polling error: {e}")
            return
        except Exception as e:
            # job.done must always resolve
            if self.is_current(job):
                logger.exception("Unexpected error while checking transcription status.")
                self._fail(job, f"Unexpected polling error: {e}")
            return

        if not self.is_current(job):
            logger.debug(f"Discarding stale status reply for job {job.id}.")
            return

        status = JobStatus.parse(reply.get('status'))
        if status == JobStatus.COMPLETED:
            job.status = status
            job.words = list(reply.get('words') or [])
            logger.info(f"✅ Transcription complete: {len(job.words)} words.")
            self._notify(job)
            self._resolve(job, job.words)
        elif status in POLLING_STATUSES:
            job.status = status
            self._notify(job)
            if job.attempts >= self._config["MAX_POLL_ATTEMPTS"]:
                self._fail(job, f"Transcription timed out after {job.attempts} status checks.")
                return
            logger.info(f"AssemblyAI: Status - {status.value}. Will check again...")
            self._schedule_poll(job, self._config["POLL_INTERVAL_SEC"])
        else:
            self._fail(job, reply.get('error') or 'Unknown transcription error')

    def _fail(self, job: Job, message: str) -> None:
        logger.error(f"❌ Transcription failed: {message}")
        if self._poll_handle is not None and self.is_current(job):
            self._poll_handle.cancel()
            self._poll_handle = None
        job.status = JobStatus.ERROR
        job.error = message
        self._notify(job)
        self._resolve(job, None)

    @staticmethod
    def _resolve(job: Job, words: Optional[List[Word]]) -> None:
        if job.done is not None and not job.done.done():
            job.done.set_result(words)

    def _notify(self, job: Job) -> None:
        if self._on_update is not None:
            self._on_update(job)
