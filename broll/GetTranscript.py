import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import CONFIG, get_api_key
from .Errors import TransportError
from .models import JobStatus, Word

logger = logging.getLogger(f"broll.{__name__}")


def parse_assemblyai_words(payload: Dict[str, Any]) -> List[Word]:
    """
    Converts the 'words' array of an AssemblyAI transcript into Word records.

    Entries without text or without numeric timestamps are skipped. An end time
    earlier than the start time is clamped to the start.

    Args:
        payload (Dict[str, Any]): The parsed JSON of a GET /transcript/{id} reply.

    Returns:
        List[Word]: Words in transcript order, timed in milliseconds.
    """
    words: List[Word] = []
    for entry in payload.get('words') or []:
        if not isinstance(entry, dict):
            continue
        text = entry.get('text')
        start, end = entry.get('start'), entry.get('end')
        if not isinstance(text, str) or not text.strip():
            continue
        if not isinstance(start, (int, float)) or not isinstance(end, (int, float)):
            logger.debug(f"Skipping word without timestamps: {entry}")
            continue
        confidence = entry.get('confidence')
        words.append(Word(
            text=text,
            start_ms=float(start),
            end_ms=float(max(start, end)),
            confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
        ))
    return words


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or 'Unknown error'
    if isinstance(data, dict) and data.get('error'):
        return str(data['error'])
    return 'Unknown error'


class AssemblyAITranscriber:
    """
    Thin async client for the AssemblyAI v2 REST API.

    Only the three calls the job controller needs are exposed: upload raw media,
    submit a transcription job for a URL, and read a job's status. Every failure
    surfaces as TransportError so the caller can fail the job in one place.
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None, upload_timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key or get_api_key("ASSEMBLYAI_API_KEY")
        self.base_url = (base_url or CONFIG["ASSEMBLYAI_BASE_URL"]).rstrip('/')
        self.timeout = timeout or CONFIG["HTTP_TIMEOUT_SEC"]
        # Uploads of long videos need a generous write timeout
        self.upload_timeout = httpx.Timeout(
            upload_timeout or CONFIG["UPLOAD_TIMEOUT_SEC"],
            connect=60.0,
        )
        self._transport = transport

    def _client(self, timeout: Any = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"authorization": self.api_key},
            timeout=timeout or self.timeout,
            transport=self._transport,
        )

    async def _request(self, what: str, method: str, path: str, timeout: Any = None, **kwargs) -> Dict[str, Any]:
        try:
            async with self._client(timeout) as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"❌ AssemblyAI {what} failed: {e}")
            raise TransportError(f"AssemblyAI {what} failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.error(f"❌ AssemblyAI {what} failed: {response.status_code} - {message}")
            raise TransportError(f"AssemblyAI {what} failed: {response.status_code} - {message}",
                                 status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"AssemblyAI {what} returned invalid JSON.") from e
        if not isinstance(data, dict):
            raise TransportError(f"AssemblyAI {what} returned an unexpected payload.")
        return data

    async def upload(self, data: bytes) -> str:
        """Uploads raw audio/video bytes. Returns the private upload_url."""
        size_mb = len(data) / (1024 * 1024)
        logger.info(f"⬆️ Uploading {size_mb:.1f}MB to AssemblyAI...")
        reply = await self._request("upload", "POST", "/upload", timeout=self.upload_timeout, content=data)
        upload_url = reply.get('upload_url')
        if not upload_url:
            raise TransportError("AssemblyAI upload error: No upload_url received.")
        return upload_url

    async def submit(self, audio_url: str) -> Dict[str, Any]:
        """Submits a transcription job. Returns {'id': ..., 'status': JobStatus}."""
        reply = await self._request("transcription submit", "POST", "/transcript", json={"audio_url": audio_url})
        if not reply.get('id'):
            raise TransportError("AssemblyAI transcription submit returned no job id.")
        logger.info(f"📝 Transcription submitted (ID: {reply['id'][:8]}...). Status: {reply.get('status')}")
        return {"id": reply['id'], "status": JobStatus.parse(reply.get('status'))}

    async def get_status(self, job_id: str) -> Dict[str, Any]:
        """
        Reads a job's status.

        Returns:
            Dict[str, Any]: {'status': JobStatus, 'words': List[Word] or None, 'error': str or None}.
                            'words' is only filled once the job is completed.
        """
        reply = await self._request("polling", "GET", f"/transcript/{job_id}")
        status = JobStatus.parse(reply.get('status'))
        return {
            "status": status,
            "words": parse_assemblyai_words(reply) if status == JobStatus.COMPLETED else None,
            "error": reply.get('error'),
        }
