"""Cooperative year-stepping playback loop.

Idle → Playing → Idle. Steps are scheduled with ``loop.call_later`` so that
pausing cancels the pending timer, and every fired callback re-checks the
Playing state before doing any work.
"""

import asyncio
import logging
from collections.abc import Callable

from timetravel.models import PlaybackState

logger = logging.getLogger(__name__)

DEFAULT_BASE_DELAY = 0.5


class PlaybackScheduler:
    def __init__(
        self,
        min_year: int,
        max_year: int,
        on_step: Callable[[int], object],
        on_finished: Callable[[], object] | None = None,
        base_delay: float = DEFAULT_BASE_DELAY,
        start_year: int | None = None,
        speed: int = 1,
    ) -> None:
        if min_year > max_year:
            raise ValueError(f"min_year {min_year} > max_year {max_year}")
        self.min_year = min_year
        self.max_year = max_year
        self.on_step = on_step
        self.on_finished = on_finished
        self.base_delay = base_delay
        self.state = PlaybackState(
            current_year=self._clamp(start_year if start_year is not None else min_year),
            speed_multiplier=speed,
        )
        self.steps_taken = 0
        self._timer: asyncio.TimerHandle | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def is_playing(self) -> bool:
        return self.state.is_playing

    @property
    def current_year(self) -> int:
        return self.state.current_year

    @property
    def delay(self) -> float:
        return self.base_delay / max(1, self.state.speed_multiplier)

    def set_speed(self, speed: int) -> None:
        self.state.speed_multiplier = max(1, int(speed))

    def play(self, direction: int = 1) -> None:
        """Set direction and, if idle, start stepping. Needs a running loop."""
        if direction not in (1, -1):
            raise ValueError(f"direction must be +1 or -1, got {direction}")
        self.state.direction = direction
        if self.state.is_playing:
            return
        self.state.is_playing = True
        self._idle.clear()
        logger.debug("Play from %d, direction %+d", self.state.current_year, direction)
        self._step()

    def pause(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.state.is_playing:
            logger.debug("Paused at %d", self.state.current_year)
        self.state.is_playing = False
        self._idle.set()

    def seek(self, year: int) -> int:
        """Slider input: jump to `year` and resolve once. Ignored while playing."""
        if self.state.is_playing:
            return self.state.current_year
        self.state.current_year = self._clamp(year)
        self.on_step(self.state.current_year)
        return self.state.current_year

    async def wait_idle(self) -> None:
        await self._idle.wait()

    def _step(self) -> None:
        self._timer = None
        if not self.state.is_playing:
            return

        nxt = self.state.current_year + self.state.direction
        if nxt > self.max_year or nxt < self.min_year:
            self._finish()
            return

        self.state.current_year = nxt
        self.steps_taken += 1
        self.on_step(nxt)

        if not self.state.is_playing:
            return  # paused from inside the frame callback
        if nxt == (self.max_year if self.state.direction == 1 else self.min_year):
            self._finish()
            return

        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._step)

    def _finish(self) -> None:
        logger.debug("Playback reached boundary at %d", self.state.current_year)
        self.state.is_playing = False
        self._idle.set()
        if self.on_finished is not None:
            self.on_finished()

    def _clamp(self, year: int) -> int:
        return max(self.min_year, min(self.max_year, int(year)))
