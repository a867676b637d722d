#!/usr/bin/env python3
"""
Tests for the playback synchronizer using a manual clock for the image timer
"""

import asyncio
import time

from broll.models import ImageRecord, Segment
from broll.PlaybackSync import PlaybackSynchronizer


class ManualScheduler:
    """Collects scheduled callbacks; `advance` fires the ones that are due."""

    class Handle:
        def __init__(self, when, callback):
            self.when = when
            self.callback = callback
            self.cancelled = False

        def cancel(self):
            self.cancelled = True

    def __init__(self):
        self.now = 0.0
        self.handles = []

    def __call__(self, delay, callback):
        handle = self.Handle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled and h.when > self.now]

    def advance(self, seconds):
        self.now += seconds
        for handle in list(self.handles):
            if not handle.cancelled and handle.when <= self.now:
                handle.cancelled = True
                handle.callback()


SEGMENTS = [Segment("first", 0.0, 5.0, []), Segment("second", 5.0, 10.0, [])]
IMAGES = {0: ImageRecord.from_source("https://img/a.jpg"), 1: ImageRecord.from_source("https://img/b.jpg")}


def make_sync(images=None):
    scheduler = ManualScheduler()
    indices, shown = [], []
    sync = PlaybackSynchronizer(display_duration=2.5, scheduler=scheduler,
                                on_active_index=indices.append, on_image=shown.append)
    sync.load(SEGMENTS, IMAGES if images is None else images)
    return sync, scheduler, indices, shown


def test_index_changes_are_emitted_once():
    sync, _, indices, _ = make_sync()
    returned = [sync.on_time_update(t) for t in [1, 1, 2, 2, 6]]
    assert indices == [0, 1]
    assert returned == [None, None, None, None, 1]


def test_first_tick_reports_index_when_loaded_before_play():
    scheduler = ManualScheduler()
    sync = PlaybackSynchronizer(display_duration=2.5, scheduler=scheduler)
    sync.on_metadata_loaded(duration=10.0, current_time=3.0)
    sync.load(SEGMENTS, IMAGES)
    assert sync.active_index == 0
    assert sync.duration == 10.0


def test_index_outside_all_segments_is_minus_one():
    sync, _, indices, _ = make_sync()
    sync.on_time_update(6)
    sync.on_time_update(12)
    assert sync.active_index == -1
    assert indices == [0, 1, -1]


def test_image_only_while_playing():
    sync, _, _, _ = make_sync()
    sync.on_time_update(1)
    assert sync.active_image_url is None
    sync.on_play()
    assert sync.active_image_url == "https://img/a.jpg"
    sync.on_pause()
    assert sync.active_image_url is None
    assert sync.displayed_image_url is None


def test_no_image_before_data_is_ready():
    sync, _, _, _ = make_sync()
    sync.load(SEGMENTS, IMAGES, data_ready=False)
    sync.on_play()
    sync.on_time_update(1)
    assert sync.active_image_url is None


def test_no_image_between_segments():
    sync, _, _, _ = make_sync({0: None, 1: IMAGES[1]})
    sync.on_play()
    sync.on_time_update(1)
    assert sync.active_image_url is None
    sync.on_time_update(6)
    assert sync.active_image_url == "https://img/b.jpg"


def test_displayed_image_expires_after_duration():
    sync, scheduler, _, shown = make_sync()
    sync.on_play()
    sync.on_time_update(1)
    assert sync.displayed_image_url == "https://img/a.jpg"

    scheduler.advance(2.0)
    assert sync.displayed_image_url == "https://img/a.jpg"
    scheduler.advance(0.6)
    assert sync.displayed_image_url is None
    # Still the active segment's image, just no longer on screen
    assert sync.active_image_url == "https://img/a.jpg"
    assert shown == ["https://img/a.jpg", None]


def test_same_url_does_not_restart_timer():
    sync, scheduler, _, _ = make_sync()
    sync.on_play()
    sync.on_time_update(1)
    sync.on_time_update(2)
    sync.on_time_update(3)
    assert len(scheduler.handles) == 1


def test_timer_restarts_when_url_changes():
    sync, scheduler, _, shown = make_sync()
    sync.on_play()
    sync.on_time_update(1)
    scheduler.advance(2.0)
    sync.on_time_update(6)
    assert sync.displayed_image_url == "https://img/b.jpg"

    # The first timer was cancelled, so nothing is hidden at its original deadline
    scheduler.advance(1.0)
    assert sync.displayed_image_url == "https://img/b.jpg"
    scheduler.advance(1.5)
    assert sync.displayed_image_url is None
    assert shown == ["https://img/a.jpg", "https://img/b.jpg", None]


def test_override_updates_current_image():
    sync, _, _, _ = make_sync()
    sync.on_play()
    sync.on_time_update(1)
    images = dict(IMAGES)
    images[0] = images[0].with_override("https://user/pic.png")
    sync.update_images(images)
    assert sync.active_image_url == "https://user/pic.png"
    images[0] = images[0].with_override("")
    sync.update_images(images)
    assert sync.active_image_url == "https://img/a.jpg"


def test_seek_behaves_like_time_update():
    sync, _, indices, _ = make_sync()
    assert sync.seek(7.5) == 1
    assert sync.seek(7.6) is None
    assert indices == [0, 1]


def test_ended_hides_image():
    sync, _, _, _ = make_sync()
    sync.on_play()
    sync.on_time_update(9)
    sync.on_ended()
    assert not sync.is_playing
    assert sync.active_image_url is None


def test_reset_cancels_timer():
    sync, scheduler, _, _ = make_sync()
    sync.on_play()
    sync.on_time_update(1)
    sync.reset()
    assert scheduler.pending == []
    assert sync.active_index == -1
    assert sync.displayed_image_url is None
    assert not sync.data_ready


def test_cancel_timers_keeps_image_on_screen():
    sync, scheduler, _, _ = make_sync()
    sync.on_play()
    sync.on_time_update(1)
    sync.cancel_timers()
    scheduler.advance(10)
    assert sync.displayed_image_url == "https://img/a.jpg"


def test_default_scheduler_without_event_loop():
    sync = PlaybackSynchronizer(display_duration=0.2)
    sync.load(SEGMENTS, IMAGES)
    sync.on_play()
    assert sync.displayed_image_url == "https://img/a.jpg"
    deadline = time.monotonic() + 2.0
    while sync.displayed_image_url is not None and time.monotonic() < deadline:
        time.sleep(0.01)
    assert sync.displayed_image_url is None
    assert sync.active_image_url == "https://img/a.jpg"


def test_default_scheduler_inside_event_loop():
    async def scenario():
        sync = PlaybackSynchronizer(display_duration=0.01)
        sync.load(SEGMENTS, IMAGES)
        sync.on_play()
        shown = sync.displayed_image_url
        await asyncio.sleep(0.05)
        return shown, sync.displayed_image_url

    assert asyncio.run(scenario()) == ("https://img/a.jpg", None)


if __name__ == "__main__":
    for name, func in list(globals().items()):
        if name.startswith("test_") and callable(func):
            func()
            print(f"✅ {name}")
    print("\n🎉 All playback sync tests passed!")
