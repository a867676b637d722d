import logging
import mimetypes
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union
from urllib.parse import urlparse

import yt_dlp

from .config import PRESET_VIDEOS
from .models import ResolvedMedia

logger = logging.getLogger(f"broll.{__name__}")

DIRECT_MEDIA_EXTENSIONS = ('.mp4', '.m4a', '.mp3', '.wav', '.webm', '.mov', '.ogg', '.flac', '.aac', '.mkv')
GENERIC_MIME_TYPES = ('', 'application/octet-stream')


@dataclass(frozen=True)
class FileInput:
    """A local video. `audio_override` is an optional separate track used only for transcription."""
    name: str
    data: bytes = field(repr=False)
    mime_type: str = ''
    audio_override: Optional[bytes] = field(default=None, repr=False)


@dataclass(frozen=True)
class UrlInput:
    address: str


@dataclass(frozen=True)
class PresetInput:
    preset_id: int


InputSource = Union[FileInput, UrlInput, PresetInput]


def find_preset(preset_id: int) -> Optional[Dict[str, Any]]:
    return next((p for p in PRESET_VIDEOS if p["id"] == preset_id), None)


def is_direct_media_url(address: str) -> bool:
    path = urlparse(address).path.lower()
    return path.endswith(DIRECT_MEDIA_EXTENSIONS)


def resolve_remote_audio(address: str) -> str:
    """
    Turns a video page URL (e.g. YouTube) into a direct audio stream URL using yt-dlp.

    Direct media links are returned unchanged. If extraction fails the original
    address is returned and the transcription service is left to fetch it.

    Args:
        address (str): The URL the user entered.

    Returns:
        str: A URL the transcription service can download.
    """
    if is_direct_media_url(address):
        return address

    ydl_opts: Dict[str, Any] = {
        'format': 'bestaudio/best',  # Audio is all the transcription needs
        'noplaylist': True,
        'quiet': True,
        'skip_download': True,
    }
    try:
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(address, download=False)
    except yt_dlp.utils.DownloadError as e:
        logger.warning(f"⚠️ Could not resolve media URL {address}: {e}. Submitting it unchanged.")
        return address

    stream_url = (info or {}).get('url')
    if not stream_url:
        logger.warning(f"⚠️ yt-dlp found no direct stream for {address}. Submitting it unchanged.")
        return address
    logger.info(f"🔗 Resolved {address} to a direct audio stream.")
    return stream_url


def read_local_media(path: str, audio_path: Optional[str] = None) -> FileInput:
    """Loads a local video (and optional transcription audio) into a FileInput."""
    with open(path, 'rb') as f:
        data = f.read()
    audio_override = None
    if audio_path:
        with open(audio_path, 'rb') as f:
            audio_override = f.read()
    mime_type, _ = mimetypes.guess_type(path)
    return FileInput(name=os.path.basename(path), data=data, mime_type=mime_type or '',
                     audio_override=audio_override)


def resolve_input(source: InputSource,
                  url_resolver: Callable[[str], str] = resolve_remote_audio) -> ResolvedMedia:
    """
    Resolves an input into a playable media source and an audio resource for transcription.

    This is the one place that knows about every input kind.

    Raises:
        ValueError: For an unknown preset id or an empty URL.
        TypeError: For anything that is not an InputSource.
    """
    if isinstance(source, FileInput):
        warning = None
        if source.mime_type in GENERIC_MIME_TYPES and source.audio_override is None:
            warning = ("Main video file type is generic or undetermined. Transcription may struggle "
                       "with its audio if a separate audio file isn't provided.")
        if source.audio_override is not None:
            return ResolvedMedia(media_source=f"file://{source.name}", label="custom audio",
                                 audio_bytes=source.audio_override, warning=warning)
        return ResolvedMedia(media_source=f"file://{source.name}", label="video audio",
                             audio_bytes=source.data, warning=warning)

    if isinstance(source, UrlInput):
        address = source.address.strip()
        if not address:
            raise ValueError("Empty media URL.")
        return ResolvedMedia(media_source=address, label="remote audio", audio_url=url_resolver(address))

    if isinstance(source, PresetInput):
        preset = find_preset(source.preset_id)
        if preset is None:
            raise ValueError("Invalid preset number. Please choose from available presets.")
        return ResolvedMedia(media_source=preset["src"], label=f"preset video '{preset['name']}' audio",
                             audio_url=preset["src"])

    raise TypeError(f"Unsupported input source: {type(source).__name__}")
