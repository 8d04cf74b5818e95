"""Tests for invitation_sdk.core.playback — sessions, scheduling, progress, gestures."""

import threading
import time
import pytest
from unittest.mock import MagicMock, patch

from invitation_sdk.core.playback import (
    AUTO_ADVANCE_LABEL,
    DEFAULT_DURATION_MS,
    NAVIGATION_LABEL,
    BackgroundAudio,
    EmptySequenceError,
    InteractionController,
    ManualScheduler,
    PendingDirection,
    PlaybackSession,
    SegmentFill,
    SessionEvent,
    SilentPlayer,
    ThreadingScheduler,
    Slide,
    TapAction,
    preload_images,
    render_progress,
    resolve_tap,
)


def make_slides(count: int = 3, duration_ms=1000, terminal: bool = True) -> list[Slide]:
    slides = [
        Slide(id=i + 1, image_url=f"https://example.com/{i}.jpg", content=f"slide {i}",
              duration_ms=duration_ms)
        for i in range(count)
    ]
    if terminal:
        slides.append(Slide(id=count + 1, content="details", is_terminal=True))
    return slides


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, event, session):
        self.events.append((event, session))


@pytest.fixture
def scheduler():
    return ManualScheduler()


def start(scheduler, slides=None, **kwargs) -> PlaybackSession:
    return PlaybackSession.create(slides or make_slides(), scheduler, **kwargs)


def goto(session: PlaybackSession, scheduler: ManualScheduler, index: int) -> None:
    while session.current_index < index:
        session.advance()
        scheduler.run_due()


# ── Slide ───────────────────────────────────────────────────────────────

class TestSlide:
    def test_default_duration_when_absent(self):
        assert Slide(id=1).effective_duration_ms == DEFAULT_DURATION_MS

    def test_default_duration_when_non_positive(self):
        assert Slide(id=1, duration_ms=0).effective_duration_ms == 3000
        assert Slide(id=1, duration_ms=-5).effective_duration_ms == 3000

    def test_explicit_duration(self):
        assert Slide(id=1, duration_ms=1500).effective_duration_ms == 1500

    def test_slides_are_immutable(self):
        slide = Slide(id=1)
        with pytest.raises(Exception):
            slide.id = 2


# ── ManualScheduler ─────────────────────────────────────────────────────

class TestManualScheduler:
    def test_fires_in_due_order(self, scheduler):
        fired = []
        scheduler.call_later(200, lambda: fired.append("b"))
        scheduler.call_later(100, lambda: fired.append("a"))
        assert scheduler.advance(250) == 2
        assert fired == ["a", "b"]
        assert scheduler.now_ms == 250

    def test_not_due_yet(self, scheduler):
        fired = []
        scheduler.call_later(100, lambda: fired.append(1))
        scheduler.advance(99)
        assert fired == []
        scheduler.advance(1)
        assert fired == [1]

    def test_cancelled_handle_does_not_fire(self, scheduler):
        fired = []
        handle = scheduler.call_later(10, lambda: fired.append(1))
        handle.cancel()
        assert scheduler.advance(100) == 0
        assert fired == []
        assert handle.active is False

    def test_callbacks_scheduled_while_advancing_fire(self, scheduler):
        fired = []
        scheduler.call_later(10, lambda: scheduler.call_later(0, lambda: fired.append("chained")))
        scheduler.advance(10)
        assert fired == ["chained"]

    def test_pending_filters_by_label(self, scheduler):
        scheduler.call_later(10, lambda: None, label="x")
        scheduler.call_later(20, lambda: None, label="y")
        assert [h.label for h in scheduler.pending()] == ["x", "y"]
        assert len(scheduler.pending("y")) == 1


# ── ThreadingScheduler ──────────────────────────────────────────────────

def wait_for(condition, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


class TestThreadingScheduler:
    def test_fires_callback(self):
        scheduler = ThreadingScheduler()
        fired = threading.Event()
        handle = scheduler.call_later(20, fired.set, label="x")
        assert fired.wait(2.0) is True
        assert handle.fired is True
        assert wait_for(lambda: scheduler.pending_count() == 0)

    def test_cancel_stops_timer_thread(self):
        scheduler = ThreadingScheduler()
        fired = []
        handle = scheduler.call_later(10_000, lambda: fired.append(1))
        assert scheduler.pending_count() == 1
        handle.cancel()
        assert scheduler.pending_count() == 0
        assert handle.active is False
        assert fired == []

    def test_cancelled_before_due_never_runs(self):
        scheduler = ThreadingScheduler()
        fired = []
        scheduler.call_later(50, lambda: fired.append(1)).cancel()
        time.sleep(0.2)
        assert fired == []

    def test_shutdown_cancels_everything(self):
        scheduler = ThreadingScheduler()
        fired = []
        handles = [scheduler.call_later(10_000, lambda: fired.append(1)) for _ in range(3)]
        scheduler.shutdown()
        assert scheduler.pending_count() == 0
        assert all(not h.active for h in handles)
        assert fired == []

    def test_callback_error_is_logged(self):
        scheduler = ThreadingScheduler()
        after = threading.Event()

        def boom():
            raise RuntimeError("bad callback")

        scheduler.call_later(10, boom)
        scheduler.call_later(30, after.set)
        assert after.wait(2.0) is True

    def test_session_runs_to_terminal_on_wall_clock(self):
        scheduler = ThreadingScheduler()
        session = PlaybackSession.create(make_slides(duration_ms=50), scheduler)
        try:
            assert wait_for(lambda: session.current_index == 3)
            assert session.on_terminal is True
            assert wait_for(lambda: scheduler.pending_count() == 0)
            time.sleep(0.15)
            assert session.current_index == 3
            assert session.timer_pending is False
        finally:
            scheduler.shutdown()

    def test_manual_navigation_releases_timer_thread(self):
        scheduler = ThreadingScheduler()
        session = PlaybackSession.create(make_slides(duration_ms=10_000), scheduler)
        try:
            assert scheduler.pending_count() == 1
            session.advance()
            assert wait_for(lambda: session.current_index == 1)
            # Only the new slide's timer is left waiting.
            assert scheduler.pending_count() == 1
            session.close()
            assert scheduler.pending_count() == 0
        finally:
            scheduler.shutdown()


# ── Construction ────────────────────────────────────────────────────────

class TestCreate:
    def test_empty_sequence_rejected(self, scheduler):
        with pytest.raises(EmptySequenceError):
            PlaybackSession.create([], scheduler)
        assert scheduler.pending() == []

    def test_empty_sequence_is_value_error(self, scheduler):
        with pytest.raises(ValueError):
            PlaybackSession.create([], scheduler)

    def test_initial_state(self, scheduler):
        session = start(scheduler)
        assert session.current_index == 0
        assert session.paused is False
        assert session.pending_direction == PendingDirection.NONE
        assert session.closed is False
        assert session.timer_pending is True

    def test_slides_are_copied_to_tuple(self, scheduler):
        slides = make_slides()
        session = start(scheduler, slides)
        slides.clear()
        assert len(session.slides) == 4

    def test_single_terminal_slide_schedules_nothing(self, scheduler):
        session = start(scheduler, [Slide(id=1, is_terminal=True)])
        assert session.on_terminal is True
        assert scheduler.pending(AUTO_ADVANCE_LABEL) == []


# ── Auto-advance ────────────────────────────────────────────────────────

class TestAutoAdvance:
    def test_runs_to_terminal_and_stops(self, scheduler):
        session = start(scheduler)
        scheduler.advance(3000)
        assert session.current_index == 3
        assert session.current_slide.is_terminal is True
        assert scheduler.pending() == []
        # Nothing fires afterwards
        assert scheduler.advance(60_000) == 0
        assert session.current_index == 3
        assert session.closed is False

    def test_steps_one_slide_per_duration(self, scheduler):
        session = start(scheduler)
        scheduler.advance(999)
        assert session.current_index == 0
        scheduler.advance(1)
        assert session.current_index == 1
        scheduler.advance(1000)
        assert session.current_index == 2

    def test_uses_default_duration(self, scheduler):
        session = start(scheduler, make_slides(duration_ms=None))
        scheduler.advance(2999)
        assert session.current_index == 0
        scheduler.advance(1)
        assert session.current_index == 1

    def test_last_non_terminal_slide_ends_session(self, scheduler):
        recorder = Recorder()
        session = start(scheduler, make_slides(2, terminal=False), on_event=recorder)
        scheduler.advance(2000)
        assert session.closed is True
        assert session.current_index == 1
        assert recorder.events == [(SessionEvent.ENDED, session)]

    def test_slide_changed_hook_called(self, scheduler):
        seen = []
        start(scheduler, on_slide_changed=seen.append)
        scheduler.advance(3000)
        assert seen == [1, 2, 3]

    def test_failing_hook_does_not_stop_progression(self, scheduler):
        def boom(index):
            raise RuntimeError("audio device gone")

        session = start(scheduler, on_slide_changed=boom)
        scheduler.advance(2000)
        assert session.current_index == 2


# ── Single timer ────────────────────────────────────────────────────────

class TestSingleTimer:
    def test_at_most_one_timer_through_navigation(self, scheduler):
        session = start(scheduler)
        actions = [
            session.advance, session.retreat, session.pause, session.resume,
            session.advance, session.advance, session.pause, session.pause,
            session.resume, session.resume, session.retreat,
        ]
        for action in actions:
            action()
            assert len(scheduler.pending(AUTO_ADVANCE_LABEL)) <= 1
            scheduler.run_due()
            assert len(scheduler.pending(AUTO_ADVANCE_LABEL)) <= 1

    def test_manual_navigation_cancels_timer_immediately(self, scheduler):
        session = start(scheduler)
        session.advance()
        assert session.timer_pending is False
        assert scheduler.pending(AUTO_ADVANCE_LABEL) == []
        assert len(scheduler.pending(NAVIGATION_LABEL)) == 1

    def test_new_slide_gets_full_duration(self, scheduler):
        session = start(scheduler)
        scheduler.advance(900)
        session.advance()
        scheduler.run_due()
        assert session.current_index == 1
        scheduler.advance(999)
        assert session.current_index == 1
        scheduler.advance(1)
        assert session.current_index == 2


# ── Manual navigation ───────────────────────────────────────────────────

class TestNavigation:
    def test_advance_is_applied_on_tick(self, scheduler):
        session = start(scheduler)
        session.advance()
        assert session.current_index == 0
        assert session.pending_direction == PendingDirection.ADVANCING
        scheduler.run_due()
        assert session.current_index == 1
        assert session.pending_direction == PendingDirection.NONE

    def test_retreat_from_first_slide_is_noop(self, scheduler):
        session = start(scheduler)
        session.retreat()
        assert session.current_index == 0
        assert session.pending_direction == PendingDirection.NONE
        assert session.timer_pending is True

    def test_retreat(self, scheduler):
        session = start(scheduler)
        goto(session, scheduler, 2)
        session.retreat()
        assert session.pending_direction == PendingDirection.RETREATING
        scheduler.run_due()
        assert session.current_index == 1

    def test_last_request_wins_advance_then_retreat(self, scheduler):
        session = start(scheduler)
        goto(session, scheduler, 1)
        session.advance()
        session.retreat()
        assert session.pending_direction == PendingDirection.RETREATING
        scheduler.run_due()
        assert session.current_index == 0
        assert session.pending_direction == PendingDirection.NONE

    def test_last_request_wins_retreat_then_advance(self, scheduler):
        session = start(scheduler)
        goto(session, scheduler, 1)
        session.retreat()
        session.advance()
        scheduler.run_due()
        assert session.current_index == 2

    def test_double_advance_moves_one_slide(self, scheduler):
        session = start(scheduler)
        session.advance()
        session.advance()
        assert len(scheduler.pending(NAVIGATION_LABEL)) == 1
        scheduler.run_due()
        assert session.current_index == 1

    def test_advance_on_terminal_ends_session(self, scheduler):
        recorder = Recorder()
        session = start(scheduler, on_event=recorder)
        goto(session, scheduler, 3)
        session.advance()
        scheduler.run_due()
        assert session.current_index == 3
        assert session.closed is True
        assert recorder.events == [(SessionEvent.ENDED, session)]

    def test_advance_on_last_slide_ignored_while_retreat_pending(self, scheduler):
        session = start(scheduler)
        goto(session, scheduler, 3)
        session.retreat()
        session.advance()
        assert session.closed is False
        scheduler.run_due()
        assert session.current_index == 2

    def test_retreat_from_terminal_resumes_timer(self, scheduler):
        session = start(scheduler)
        goto(session, scheduler, 3)
        assert session.timer_pending is False
        session.retreat()
        scheduler.run_due()
        assert session.current_index == 2
        assert session.timer_pending is True


# ── Pause / resume ──────────────────────────────────────────────────────

class TestPauseResume:
    def test_pause_cancels_timer(self, scheduler):
        session = start(scheduler)
        session.pause()
        assert session.paused is True
        assert session.timer_pending is False
        scheduler.advance(10_000)
        assert session.current_index == 0

    def test_resume_discards_elapsed_time(self, scheduler):
        session = start(scheduler)
        scheduler.advance(900)
        session.pause()
        scheduler.advance(5000)
        session.resume()
        scheduler.advance(999)
        assert session.current_index == 0
        scheduler.advance(1)
        assert session.current_index == 1

    def test_resume_when_not_paused_is_noop(self, scheduler):
        session = start(scheduler)
        handle = scheduler.pending(AUTO_ADVANCE_LABEL)[0]
        session.resume()
        assert scheduler.pending(AUTO_ADVANCE_LABEL) == [handle]

    def test_navigation_while_paused_keeps_timer_off(self, scheduler):
        session = start(scheduler)
        session.pause()
        session.advance()
        scheduler.run_due()
        assert session.current_index == 1
        assert session.timer_pending is False
        session.resume()
        assert session.timer_pending is True

    def test_resume_on_terminal_schedules_nothing(self, scheduler):
        session = start(scheduler)
        goto(session, scheduler, 3)
        session.pause()
        session.resume()
        assert scheduler.pending(AUTO_ADVANCE_LABEL) == []


# ── Restart / close ─────────────────────────────────────────────────────

class TestRestartClose:
    def test_restart_returns_fresh_session(self, scheduler):
        recorder = Recorder()
        session = start(scheduler, on_event=recorder)
        goto(session, scheduler, 3)
        fresh = session.restart()
        assert fresh is not session
        assert fresh.current_index == 0
        assert fresh.slides == session.slides
        assert session.closed is True
        assert session.current_index == 3
        assert recorder.events == [(SessionEvent.RESTARTED, fresh)]

    def test_restart_cancels_old_timers(self, scheduler):
        session = start(scheduler)
        session.advance()
        fresh = session.restart()
        assert len(scheduler.pending(AUTO_ADVANCE_LABEL)) == 1
        assert scheduler.pending(NAVIGATION_LABEL) == []
        scheduler.advance(1000)
        assert fresh.current_index == 1
        assert session.current_index == 0

    def test_restart_is_not_paused(self, scheduler):
        session = start(scheduler)
        session.pause()
        fresh = session.restart()
        assert fresh.paused is False
        assert fresh.timer_pending is True

    def test_close_emits_ended(self, scheduler):
        recorder = Recorder()
        session = start(scheduler, on_event=recorder)
        session.close()
        session.close()
        assert session.closed is True
        assert recorder.events == [(SessionEvent.ENDED, session)]
        assert scheduler.pending() == []

    def test_operations_after_close_are_noops(self, scheduler):
        session = start(scheduler)
        goto(session, scheduler, 1)
        session.close()
        session.advance()
        session.retreat()
        session.pause()
        session.resume()
        assert scheduler.advance(10_000) == 0
        assert session.current_index == 1
        assert session.paused is False

    def test_failing_listener_is_contained(self, scheduler):
        def listener(event, session):
            raise RuntimeError("view already unmounted")

        session = start(scheduler, on_event=listener)
        session.close()
        assert session.closed is True


# ── Progress ────────────────────────────────────────────────────────────

class TestProgress:
    def test_initial_segments(self, scheduler):
        session = start(scheduler)
        fills = [s.fill for s in render_progress(session)]
        assert fills == [SegmentFill.ANIMATING, SegmentFill.EMPTY, SegmentFill.EMPTY, SegmentFill.EMPTY]

    def test_segments_after_two_slides(self, scheduler):
        session = start(scheduler)
        scheduler.advance(2000)
        segments = render_progress(session)
        assert [s.fill for s in segments] == [
            SegmentFill.FULL, SegmentFill.FULL, SegmentFill.ANIMATING, SegmentFill.EMPTY,
        ]
        assert segments[2].duration_ms == 1000

    def test_advancing_fills_current(self, scheduler):
        session = start(scheduler)
        session.advance()
        assert render_progress(session)[0].fill == SegmentFill.FULL

    def test_retreating_empties_current(self, scheduler):
        session = start(scheduler)
        goto(session, scheduler, 1)
        session.retreat()
        segments = render_progress(session)
        assert segments[0].fill == SegmentFill.FULL
        assert segments[1].fill == SegmentFill.EMPTY

    def test_paused_segment_keeps_animating_with_new_key(self, scheduler):
        session = start(scheduler)
        before = render_progress(session)[0]
        session.pause()
        after = render_progress(session)[0]
        assert after.fill == SegmentFill.ANIMATING
        assert after.paused is True
        assert after.animation_key != before.animation_key

    def test_animation_key_changes_with_index(self, scheduler):
        session = start(scheduler)
        first = render_progress(session)[0].animation_key
        scheduler.advance(1000)
        second = render_progress(session)[1].animation_key
        assert first != second

    def test_terminal_segment_animates_default_duration(self, scheduler):
        session = start(scheduler)
        scheduler.advance(3000)
        last = render_progress(session)[-1]
        assert last.fill == SegmentFill.ANIMATING
        assert last.duration_ms == DEFAULT_DURATION_MS


# ── Interaction ─────────────────────────────────────────────────────────

class TestResolveTap:
    def test_left_zone(self):
        assert resolve_tap(0, 100) == TapAction.RETREAT
        assert resolve_tap(29.9, 100) == TapAction.RETREAT

    def test_right_zone(self):
        assert resolve_tap(30, 100) == TapAction.ADVANCE
        assert resolve_tap(99, 100) == TapAction.ADVANCE

    def test_invalid_width(self):
        with pytest.raises(ValueError):
            resolve_tap(10, 0)


class TestInteractionController:
    def test_tap_right_advances(self, scheduler):
        session = start(scheduler)
        controller = InteractionController(session)
        assert controller.tap(300, 400) == TapAction.ADVANCE
        scheduler.run_due()
        assert session.current_index == 1

    def test_tap_left_retreats(self, scheduler):
        session = start(scheduler)
        goto(session, scheduler, 2)
        controller = InteractionController(session)
        controller.tap(10, 400)
        scheduler.run_due()
        assert session.current_index == 1

    def test_press_and_release(self, scheduler):
        session = start(scheduler)
        controller = InteractionController(session)
        controller.press()
        assert session.paused is True
        controller.release()
        assert session.paused is False

    def test_leave_and_cancel_end_hold(self, scheduler):
        session = start(scheduler)
        controller = InteractionController(session)
        controller.press()
        controller.leave()
        assert session.paused is False
        controller.press()
        controller.cancel()
        assert session.paused is False

    def test_release_without_press_does_nothing(self, scheduler):
        session = start(scheduler)
        session.pause()
        controller = InteractionController(session)
        controller.release()
        assert session.paused is True

    def test_tap_retries_music(self, scheduler):
        player = SilentPlayer()
        audio = BackgroundAudio(player)
        controller = InteractionController(start(scheduler), audio)
        controller.tap(300, 400)
        assert audio.playing is True
        assert player.play_calls == 1

    def test_bind_switches_session(self, scheduler):
        session = start(scheduler)
        controller = InteractionController(session)
        controller.press()
        fresh = session.restart()
        controller.bind(fresh)
        controller.release()
        assert fresh.paused is False
        controller.tap(300, 400)
        scheduler.run_due()
        assert fresh.current_index == 1


# ── Background audio ────────────────────────────────────────────────────

class TestBackgroundAudio:
    def test_defaults(self):
        player = SilentPlayer()
        assert player.track == "/bgm.mp3"
        assert player.volume == 0.5
        assert player.loop is True

    def test_start_plays(self):
        audio = BackgroundAudio(SilentPlayer())
        assert audio.start() is True
        assert audio.playing is True

    def test_blocked_autoplay_is_swallowed(self):
        player = MagicMock()
        player.play.side_effect = RuntimeError("autoplay blocked")
        audio = BackgroundAudio(player)
        assert audio.start() is False
        assert audio.playing is False

    def test_toggle_mute(self):
        player = SilentPlayer()
        audio = BackgroundAudio(player)
        audio.start()
        assert audio.toggle_mute() is True
        assert audio.playing is False
        assert player.pause_calls == 1
        assert audio.toggle_mute() is False
        assert audio.playing is True

    def test_try_play_respects_mute(self):
        player = SilentPlayer()
        audio = BackgroundAudio(player)
        audio.toggle_mute()
        assert audio.try_play() is False
        assert player.play_calls == 0


# ── Preload ─────────────────────────────────────────────────────────────

class TestPreload:
    @patch("invitation_sdk.core.playback.preload.requests.get")
    def test_records_loaded_and_failed(self, mock_get):
        import requests

        ok = MagicMock()
        ok.iter_content.return_value = [b"abc"]
        mock_get.side_effect = [ok, requests.ConnectionError("down")]

        report = preload_images(["https://a/1.jpg", "", "https://a/2.jpg"])
        assert report.loaded == ["https://a/1.jpg"]
        assert report.failed == ["https://a/2.jpg"]
        assert mock_get.call_count == 2
