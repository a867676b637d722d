import asyncio
import logging
import threading
from typing import Callable, List, Optional, Sequence

from .config import CONFIG
from .models import ImageMap, Segment
from .TranscriptParser import find_active_segment

logger = logging.getLogger(f"broll.{__name__}")

# scheduler(delay_sec, callback) -> handle with .cancel()
Scheduler = Callable[[float, Callable[[], None]], object]


def loop_scheduler(delay: float, callback: Callable[[], None]):
    """
    Schedules on the running asyncio loop. Hosts that call in from plain
    synchronous code (e.g. a Streamlit rerun) get a daemon threading.Timer instead.
    Both handles expose `.cancel()`.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(delay, callback)


class PlaybackSynchronizer:
    """
    Maps the media clock to the active segment and the image to overlay.

    Fed by the playback host's time-update, seek, play, pause and ended
    notifications. It only reads the segment list and image map it is given.

    Two image values are tracked:
    - `active_image_url`: the display URL of the active segment, while playing
      and once all data is processed.
    - `displayed_image_url`: the same URL, but cleared by a one-shot timer
      `display_duration` seconds after it was (re)selected, even if the segment
      stays active. The timer restarts on every change of URL.
    """

    def __init__(self, display_duration: Optional[float] = None, scheduler: Optional[Scheduler] = None,
                 on_active_index: Optional[Callable[[int], None]] = None,
                 on_image: Optional[Callable[[Optional[str]], None]] = None):
        self.display_duration = CONFIG["IMAGE_DISPLAY_DURATION_SEC"] if display_duration is None else display_duration
        self._schedule = scheduler or loop_scheduler
        self._on_active_index = on_active_index
        self._on_image = on_image

        self._segments: List[Segment] = []
        self._images: ImageMap = {}
        self._data_ready = False
        self._playing = False
        self._buffering = False
        self.current_time = 0.0
        self.duration = 0.0

        self._active_index = -1
        self._active_image_url: Optional[str] = None
        self._displayed_image_url: Optional[str] = None
        self._expiry_handle = None
        self._expiry_token: Optional[object] = None
        self._timer_lock = threading.RLock()

    # --- read-only state ---

    @property
    def active_index(self) -> int:
        return self._active_index

    @property
    def active_image_url(self) -> Optional[str]:
        return self._active_image_url

    @property
    def displayed_image_url(self) -> Optional[str]:
        return self._displayed_image_url

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def is_buffering(self) -> bool:
        return self._buffering

    @property
    def data_ready(self) -> bool:
        return self._data_ready

    # --- data ---

    def load(self, segments: Sequence[Segment], images: ImageMap, data_ready: bool = True) -> None:
        self._segments = list(segments)
        self._images = dict(images)
        self._data_ready = data_ready
        self._update_index(find_active_segment(self._segments, self.current_time))
        self._refresh_image()

    def update_images(self, images: ImageMap) -> None:
        self._images = dict(images)
        self._refresh_image()

    def reset(self) -> None:
        """Back to an empty, paused state. Cancels the expiry timer."""
        self._cancel_expiry()
        self._segments = []
        self._images = {}
        self._data_ready = False
        self._playing = False
        self._buffering = False
        self.current_time = 0.0
        self.duration = 0.0
        self._update_index(-1)
        self._set_active_image(None)

    # --- playback host notifications ---

    def on_metadata_loaded(self, duration: float, current_time: float = 0.0) -> None:
        self.duration = duration
        self.current_time = current_time

    def on_time_update(self, t: float) -> Optional[int]:
        """
        Handles a media-clock tick.

        Returns:
            Optional[int]: The new active index if it changed, otherwise None.
        """
        self.current_time = t
        changed = self._update_index(find_active_segment(self._segments, t))
        self._refresh_image()
        return self._active_index if changed else None

    def seek(self, t: float) -> Optional[int]:
        return self.on_time_update(t)

    def on_play(self) -> None:
        self._playing = True
        self._refresh_image()

    def on_pause(self) -> None:
        self._playing = False
        self._refresh_image()

    def on_ended(self) -> None:
        self.on_pause()

    def on_buffering(self, buffering: bool) -> None:
        self._buffering = buffering

    def cancel_timers(self) -> None:
        self._cancel_expiry()

    # --- internals ---

    def _update_index(self, index: int) -> bool:
        if index == self._active_index:
            return False
        self._active_index = index
        logger.debug(f"Active segment -> {index}")
        if self._on_active_index is not None:
            self._on_active_index(index)
        return True

    def _refresh_image(self) -> None:
        url = None
        if self._playing and self._data_ready and 0 <= self._active_index < len(self._segments):
            record = self._images.get(self._active_index)
            url = record.display_url if record is not None else None
        self._set_active_image(url)

    def _set_active_image(self, url: Optional[str]) -> None:
        if url == self._active_image_url:
            return
        with self._timer_lock:
            self._active_image_url = url
            self._cancel_expiry()
            self._show(url)
            if url:
                token = object()
                self._expiry_token = token
                self._expiry_handle = self._schedule(self.display_duration, lambda: self._expire(token))

    def _expire(self, token: object) -> None:
        # May run on a timer thread
        with self._timer_lock:
            if token is not self._expiry_token:
                return
            self._expiry_handle = None
            self._expiry_token = None
            self._show(None)

    def _show(self, url: Optional[str]) -> None:
        if url == self._displayed_image_url:
            return
        self._displayed_image_url = url
        if self._on_image is not None:
            self._on_image(url)

    def _cancel_expiry(self) -> None:
        with self._timer_lock:
            if self._expiry_handle is not None:
                self._expiry_handle.cancel()
            self._expiry_handle = None
            self._expiry_token = None
