#!/usr/bin/env python3
"""
Tests for the transcription job controller: polling, failures, cancellation and stale replies
"""

import asyncio

import pytest

from broll.config import CONFIG
from broll.Errors import ConfigurationError, TransportError
from broll.JobController import TranscriptionJobController
from broll.models import JobStatus, ResolvedMedia, Word

FAST = dict(CONFIG, FIRST_POLL_DELAY_SEC=0, POLL_INTERVAL_SEC=0, MAX_POLL_ATTEMPTS=5)
WORDS = [Word("Hello", 0, 300), Word("there.", 350, 700)]


class FakeTranscriber:
    """Scripted stand-in for the AssemblyAI client."""

    def __init__(self, statuses=None, submit_status="queued", fail_upload=False, fail_submit=False):
        self.statuses = list(statuses or [{"status": "completed", "words": WORDS}])
        self.submit_status = submit_status
        self.fail_upload = fail_upload
        self.fail_submit = fail_submit
        self.uploads = []
        self.submitted = []
        self.polled = []
        self.gates = {}
        self._next_id = 0

    async def upload(self, data):
        self.uploads.append(data)
        if self.fail_upload:
            raise TransportError("Upload failed: 500", status_code=500)
        return "https://cdn.example/upload/abc"

    async def submit(self, audio_url):
        self.submitted.append(audio_url)
        if self.fail_submit:
            raise TransportError("Submit failed: 401", status_code=401)
        self._next_id += 1
        return {"id": f"job-{self._next_id}", "status": JobStatus.parse(self.submit_status)}

    async def get_status(self, job_id):
        self.polled.append(job_id)
        gate = self.gates.get(job_id)
        if gate is not None:
            await gate.wait()
        reply = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return dict(reply)


def media_bytes():
    return ResolvedMedia(media_source="file://clip.mp4", label="video audio", audio_bytes=b"RIFF")


def media_url():
    return ResolvedMedia(media_source="https://x/clip.mp4", label="remote audio", audio_url="https://x/clip.mp4")


def test_happy_path_returns_words():
    transcriber = FakeTranscriber([{"status": "processing"}, {"status": "completed", "words": WORDS}])
    updates = []
    controller = TranscriptionJobController(transcriber, FAST, on_update=lambda job: updates.append(job.status))

    words = asyncio.run(controller.run(media_bytes()))

    assert words == WORDS
    assert controller.job.status == JobStatus.COMPLETED
    assert controller.job.attempts == 2
    assert updates[0] == JobStatus.UPLOADING
    assert JobStatus.QUEUED in updates
    assert JobStatus.PROCESSING in updates
    assert updates[-1] == JobStatus.COMPLETED
    assert not controller.has_pending_poll


def test_bytes_are_uploaded_before_submit():
    transcriber = FakeTranscriber()
    asyncio.run(TranscriptionJobController(transcriber, FAST).run(media_bytes()))
    assert transcriber.uploads == [b"RIFF"]
    assert transcriber.submitted == ["https://cdn.example/upload/abc"]


def test_remote_url_is_submitted_directly():
    transcriber = FakeTranscriber()
    asyncio.run(TranscriptionJobController(transcriber, FAST).run(media_url()))
    assert transcriber.uploads == []
    assert transcriber.submitted == ["https://x/clip.mp4"]


def test_upload_failure_moves_job_to_error():
    controller = TranscriptionJobController(FakeTranscriber(fail_upload=True), FAST)
    words = asyncio.run(controller.run(media_bytes()))
    assert words is None
    assert controller.job.status == JobStatus.ERROR
    assert "Upload failed" in controller.job.error


def test_submit_failure_moves_job_to_error():
    transcriber = FakeTranscriber(fail_submit=True)
    controller = TranscriptionJobController(transcriber, FAST)
    assert asyncio.run(controller.run(media_url())) is None
    assert controller.job.status == JobStatus.ERROR
    assert transcriber.polled == []


def test_nothing_to_transcribe_is_an_error():
    controller = TranscriptionJobController(FakeTranscriber(), FAST)
    empty = ResolvedMedia(media_source="file://x.mp4", label="video audio")
    assert asyncio.run(controller.run(empty)) is None
    assert controller.job.status == JobStatus.ERROR


def test_service_reported_error_is_kept():
    transcriber = FakeTranscriber([{"status": "error", "error": "Audio file is empty"}])
    controller = TranscriptionJobController(transcriber, FAST)
    assert asyncio.run(controller.run(media_url())) is None
    assert controller.job.status == JobStatus.ERROR
    assert controller.job.error == "Audio file is empty"


def test_unknown_status_without_message():
    controller = TranscriptionJobController(FakeTranscriber([{"status": "exploded"}]), FAST)
    asyncio.run(controller.run(media_url()))
    assert controller.job.error == "Unknown transcription error"


def test_poll_transport_error_fails_job():
    class FlakyTranscriber(FakeTranscriber):
        async def get_status(self, job_id):
            raise TransportError("Status check failed: 503", status_code=503)

    controller = TranscriptionJobController(FlakyTranscriber(), FAST)
    assert asyncio.run(controller.run(media_url())) is None
    assert controller.job.status == JobStatus.ERROR
    assert "503" in controller.job.error


def test_unexpected_poll_error_fails_job_instead_of_hanging():
    class BrokenTranscriber(FakeTranscriber):
        async def get_status(self, job_id):
            raise KeyError("words")

    controller = TranscriptionJobController(BrokenTranscriber(), FAST)

    async def scenario():
        return await asyncio.wait_for(controller.run(media_url()), timeout=2)

    assert asyncio.run(scenario()) is None
    assert controller.job.status == JobStatus.ERROR
    assert "Unexpected polling error" in controller.job.error
    assert not controller.has_pending_poll


def test_polling_stops_after_max_attempts():
    transcriber = FakeTranscriber([{"status": "processing"}])
    controller = TranscriptionJobController(transcriber, dict(FAST, MAX_POLL_ATTEMPTS=3))
    assert asyncio.run(controller.run(media_url())) is None
    assert controller.job.error == "Transcription timed out after 3 status checks."
    assert len(transcriber.polled) == 3
    assert not controller.has_pending_poll


def test_completed_on_submit_still_polls_for_words():
    transcriber = FakeTranscriber(submit_status="completed")
    controller = TranscriptionJobController(transcriber, FAST)
    assert asyncio.run(controller.run(media_url())) == WORDS
    assert transcriber.polled == ["job-1"]


def test_missing_transcriber_is_a_configuration_error():
    controller = TranscriptionJobController(None, FAST)
    with pytest.raises(ConfigurationError):
        asyncio.run(controller.submit(media_url()))


def test_cancel_resolves_waiters_and_drops_timer():
    async def scenario():
        controller = TranscriptionJobController(FakeTranscriber(), dict(FAST, FIRST_POLL_DELAY_SEC=60))
        job = await controller.submit(media_url())
        assert controller.has_pending_poll
        controller.cancel()
        words = await controller.wait(job)
        return controller, job, words

    controller, job, words = asyncio.run(scenario())
    assert words is None
    assert job.status == JobStatus.IDLE
    assert not controller.has_pending_poll
    assert controller.job is not job
    assert controller.job.status == JobStatus.IDLE


def test_new_submission_keeps_a_single_pending_poll():
    async def scenario():
        transcriber = FakeTranscriber()
        controller = TranscriptionJobController(transcriber, dict(FAST, FIRST_POLL_DELAY_SEC=0.01))
        first = await controller.submit(media_url())
        second = await controller.submit(media_url())
        words = await controller.wait(second)
        return transcriber, first, second, words

    transcriber, first, second, words = asyncio.run(scenario())
    assert first.status == JobStatus.IDLE
    assert second.status == JobStatus.COMPLETED
    assert words == WORDS
    # The first job's timer was dropped before it fired
    assert transcriber.polled == ["job-2"]


def test_stale_status_reply_is_discarded():
    async def scenario():
        transcriber = FakeTranscriber()
        gate = asyncio.Event()
        transcriber.gates["job-1"] = gate
        controller = TranscriptionJobController(transcriber, FAST)

        first = await controller.submit(media_url())
        # Let the first poll start and block on its gate
        while "job-1" not in transcriber.polled:
            await asyncio.sleep(0)

        second = await controller.submit(media_url())
        transcriber.gates["job-2"] = asyncio.Event()
        gate.set()
        for _ in range(10):
            await asyncio.sleep(0)
        return controller, first, second

    controller, first, second = asyncio.run(scenario())
    assert first.status == JobStatus.IDLE
    assert first.words is None
    assert controller.job is second
    assert second.words is None
    assert second.status != JobStatus.COMPLETED


if __name__ == "__main__":
    for name, func in list(globals().items()):
        if name.startswith("test_") and callable(func):
            func()
            print(f"✅ {name}")
    print("\n🎉 All job controller tests passed!")
