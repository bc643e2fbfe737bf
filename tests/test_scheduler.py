"""Tests for the cooperative playback scheduler."""

import asyncio

import pytest
from pydantic import ValidationError

from timetravel.playback.scheduler import PlaybackScheduler


def _run(coro):
    return asyncio.run(coro)


class TestPlay:
    def test_one_step_from_penultimate_year(self):
        steps: list[int] = []
        finished: list[bool] = []

        async def scenario():
            s = PlaybackScheduler(
                1900, 1950, on_step=steps.append,
                on_finished=lambda: finished.append(True),
                base_delay=0.0, start_year=1949,
            )
            s.play(1)
            await s.wait_idle()
            return s

        s = _run(scenario())
        assert steps == [1950]
        assert finished == [True]
        assert s.steps_taken == 1
        assert not s.is_playing
        assert s.current_year == 1950

    def test_plays_to_the_end(self):
        steps: list[int] = []

        async def scenario():
            s = PlaybackScheduler(1900, 1905, on_step=steps.append, base_delay=0.0)
            s.play(1)
            await s.wait_idle()

        _run(scenario())
        assert steps == [1901, 1902, 1903, 1904, 1905]

    def test_reverse(self):
        steps: list[int] = []

        async def scenario():
            s = PlaybackScheduler(1900, 1903, on_step=steps.append, base_delay=0.0, start_year=1903)
            s.play(-1)
            await s.wait_idle()

        _run(scenario())
        assert steps == [1902, 1901, 1900]

    def test_at_boundary_finishes_without_stepping(self):
        steps: list[int] = []
        finished: list[bool] = []

        async def scenario():
            s = PlaybackScheduler(
                1900, 1950, on_step=steps.append,
                on_finished=lambda: finished.append(True),
                base_delay=0.0, start_year=1950,
            )
            s.play(1)
            await s.wait_idle()
            return s

        s = _run(scenario())
        assert steps == []
        assert finished == [True]
        assert s.current_year == 1950

    def test_invalid_direction(self):
        s = PlaybackScheduler(1900, 1950, on_step=lambda y: None)
        with pytest.raises(ValueError):
            s.play(2)

    def test_min_above_max_rejected(self):
        with pytest.raises(ValueError):
            PlaybackScheduler(1950, 1900, on_step=lambda y: None)

    def test_play_while_playing_only_changes_direction(self):
        async def scenario():
            s = PlaybackScheduler(1900, 1950, on_step=lambda y: None, base_delay=10.0, start_year=1920)
            s.play(1)
            s.play(-1)
            year = s.current_year
            direction = s.state.direction
            s.pause()
            return year, direction

        assert _run(scenario()) == (1921, -1)


class TestPause:
    def test_pause_cancels_pending_timer(self):
        steps: list[int] = []

        async def scenario():
            s = PlaybackScheduler(1900, 1950, on_step=steps.append, base_delay=10.0)
            s.play(1)
            s.pause()
            await asyncio.sleep(0)
            return s

        s = _run(scenario())
        assert steps == [1901]
        assert not s.is_playing
        assert s._timer is None

    def test_pause_from_frame_callback(self):
        steps: list[int] = []

        async def scenario():
            s = PlaybackScheduler(1900, 1950, on_step=None, base_delay=0.0)

            def on_step(year):
                steps.append(year)
                if year == 1903:
                    s.pause()

            s.on_step = on_step
            s.play(1)
            await s.wait_idle()
            await asyncio.sleep(0)
            return s

        s = _run(scenario())
        assert steps == [1901, 1902, 1903]
        assert s.current_year == 1903

    def test_resume_after_pause(self):
        steps: list[int] = []

        async def scenario():
            s = PlaybackScheduler(1900, 1903, on_step=steps.append, base_delay=10.0)
            s.play(1)
            s.pause()
            s.base_delay = 0.0
            s.play(1)
            await s.wait_idle()

        _run(scenario())
        assert steps == [1901, 1902, 1903]


class TestSeekAndSpeed:
    def test_seek_when_idle(self):
        steps: list[int] = []
        s = PlaybackScheduler(1900, 1950, on_step=steps.append)
        assert s.seek(1925) == 1925
        assert steps == [1925]
        assert not s.is_playing

    def test_seek_clamps(self):
        s = PlaybackScheduler(1900, 1950, on_step=lambda y: None)
        assert s.seek(1800) == 1900
        assert s.seek(2100) == 1950

    def test_seek_ignored_while_playing(self):
        steps: list[int] = []

        async def scenario():
            s = PlaybackScheduler(1900, 1950, on_step=steps.append, base_delay=10.0)
            s.play(1)
            result = s.seek(1940)
            s.pause()
            return result

        assert _run(scenario()) == 1901
        assert steps == [1901]

    def test_delay_scales_with_speed(self):
        s = PlaybackScheduler(1900, 1950, on_step=lambda y: None)
        assert s.delay == 0.5
        s.set_speed(5)
        assert s.delay == pytest.approx(0.1)
        s.set_speed(0)
        assert s.state.speed_multiplier == 1


def test_state_rejects_bad_direction():
    s = PlaybackScheduler(1900, 1950, on_step=lambda y: None)
    with pytest.raises(ValidationError):
        s.state.direction = 0
    assert s.state.direction == 1
