"""Client-side map session: toggles, view, playback and per-frame layers.

A MapSession owns one read-only Dataset and everything a map context needs to
show it: the view, the histogram, the playback scheduler, the marker registry
and the last resolved frame. Every control is a plain setter that triggers a
single resolver pass.
"""

import logging
from collections.abc import Callable

from PIL import Image

from timetravel.config import Config
from timetravel.models import Bounds, Dataset, Direction, Frame, RenderMode
from timetravel.output.frame_renderer import render_frame
from timetravel.output.histogram import Histogram, compute_histogram
from timetravel.playback.scheduler import PlaybackScheduler
from timetravel.spatial.layers import LayerDiff, MarkerRegistry
from timetravel.spatial.positions import YearPositionResolver
from timetravel.spatial.projection import MapView

logger = logging.getLogger(__name__)

FrameListener = Callable[[Frame], object]


class MapSession:
    def __init__(
        self,
        dataset: Dataset,
        config: Config | None = None,
        mode: RenderMode | str = RenderMode.SPREAD,
        recording: bool = False,
        current_year: int | None = None,
    ) -> None:
        self.dataset = dataset
        self.config = config or Config()
        self.recording = recording
        self.people = {p.id: p for p in dataset.individuals}

        layout = self.config.layout
        self.view = MapView(
            width=layout.view_width,
            height=layout.view_height,
            min_zoom=layout.min_zoom,
            max_zoom=layout.max_zoom,
        )
        self.view.on_zoom(self._on_zoom)

        self.mode = RenderMode(mode)
        self.show_parents = False
        self.show_callouts = True
        self.autozoom = True

        self.resolver = YearPositionResolver(layout)
        self.registry = MarkerRegistry()
        self.histogram: Histogram = compute_histogram(
            dataset,
            assumed_lifespan=self.config.histogram.assumed_lifespan,
            current_year=current_year,
        )
        self.scheduler = PlaybackScheduler(
            dataset.min_year,
            dataset.max_year,
            on_step=self.update_map,
            on_finished=self._finished,
            base_delay=self.config.playback.base_delay,
            start_year=self.initial_year,
            speed=self.config.playback.default_speed,
        )
        self.scheduler.state.direction = self.initial_direction

        self.frame: Frame | None = None
        self.last_diff = LayerDiff()
        self._frame_listeners: list[FrameListener] = []
        self._finished_listeners: list[Callable[[], object]] = []

    # --- Listeners ---

    def on_frame(self, listener: FrameListener) -> None:
        self._frame_listeners.append(listener)

    def remove_frame_listener(self, listener: FrameListener) -> None:
        if listener in self._frame_listeners:
            self._frame_listeners.remove(listener)

    def on_finished(self, listener: Callable[[], object]) -> None:
        self._finished_listeners.append(listener)

    # --- Lifecycle ---

    @property
    def initial_year(self) -> int:
        """Descendant maps start at the oldest year, ancestor maps at the newest."""
        if self.dataset.metadata.direction == Direction.DOWN:
            return self.dataset.min_year
        return self.dataset.max_year

    @property
    def initial_direction(self) -> int:
        return 1 if self.dataset.metadata.direction == Direction.DOWN else -1

    @property
    def current_year(self) -> int:
        return self.scheduler.current_year

    def start(self) -> Frame:
        """Fit every event on the map and draw the first frame."""
        points = [e.coordinate for p in self.dataset.individuals for e in p.events]
        bounds = Bounds.from_points(points)
        if bounds is not None:
            with self.view.programmatic():
                self.view.fit_bounds(bounds, self.config.layout.initial_fit_padding_px)
        self.scheduler.seek(self.initial_year)
        return self.frame

    def close(self) -> None:
        self.scheduler.pause()
        self.registry.clear()
        self._frame_listeners.clear()
        self._finished_listeners.clear()

    # --- Frame pipeline ---

    def update_map(self, year: int) -> Frame:
        """Resolve `year`, reconcile the marker layer and autozoom."""
        frame = self._resolve(year)

        if self.autozoom and frame.bounds is not None:
            zoom_before = self.view.zoom
            with self.view.programmatic():
                self.view.fit_bounds(frame.bounds, self.config.layout.fit_padding_px)
            # Spiral radii are in screen pixels, so a new zoom moves everyone
            if self.mode == RenderMode.SPREAD and self.view.zoom != zoom_before:
                frame = self._resolve(year)

        self.frame = frame
        for listener in list(self._frame_listeners):
            listener(frame)
        return frame

    def refresh(self) -> Frame:
        return self.update_map(self.scheduler.current_year)

    def _resolve(self, year: int) -> Frame:
        frame = self.resolver.resolve(
            self.dataset, year, self.mode, self.view, show_parents=self.show_parents,
        )
        if self.mode == RenderMode.SPREAD:
            self.last_diff = self.registry.sync(frame, self.people)
        else:
            self.last_diff = self.registry.clear()
        return frame

    def render(self) -> Image.Image:
        if self.frame is None:
            self.start()
        return render_frame(
            self.frame,
            self.view,
            self.people,
            histogram=self.histogram,
            show_callouts=self.show_callouts,
        )

    # --- Controls ---

    def set_year(self, year: int) -> Frame:
        self.scheduler.seek(year)
        return self.frame

    def set_speed(self, speed: int) -> None:
        self.scheduler.set_speed(speed)

    def set_show_parents(self, enabled: bool) -> Frame:
        self.show_parents = bool(enabled)
        return self.refresh()

    def set_show_callouts(self, enabled: bool) -> Frame:
        self.show_callouts = bool(enabled)
        return self.refresh()

    def set_autozoom(self, enabled: bool) -> Frame:
        self.autozoom = bool(enabled)
        return self.refresh()

    def set_mode(self, mode: RenderMode | str) -> Frame:
        self.mode = RenderMode(mode)
        return self.refresh()

    def user_zoom(self, zoom: int) -> Frame:
        """Zoom from direct interaction. Turns autozoom off."""
        self.view.user_zoom(zoom)
        return self.refresh()

    def play(self, direction: int | None = None) -> None:
        self.scheduler.play(direction if direction is not None else self.scheduler.state.direction)

    def pause(self) -> None:
        self.scheduler.pause()

    # --- Recording support ---

    def playback_params(self) -> dict:
        return {
            "start_year": self.scheduler.current_year,
            "direction": self.scheduler.state.direction,
            "speed": self.scheduler.state.speed_multiplier,
            "show_parents": self.show_parents,
            "show_callouts": self.show_callouts,
            "mode": self.mode,
            "autozoom": self.autozoom,
            "center_lat": self.view.center_lat,
            "center_lng": self.view.center_lng,
            "zoom": self.view.zoom,
        }

    def apply_playback_params(
        self,
        start_year: int,
        speed: int,
        show_parents: bool,
        show_callouts: bool,
        mode: RenderMode | str,
        autozoom: bool,
        center_lat: float,
        center_lng: float,
        zoom: int,
    ) -> Frame:
        self.pause()
        self.show_parents = show_parents
        self.show_callouts = show_callouts
        self.mode = RenderMode(mode)
        self.autozoom = autozoom
        self.set_speed(speed)
        with self.view.programmatic():
            self.view.set_view(center_lat, center_lng, zoom)
        self.scheduler.seek(start_year)
        return self.frame

    # --- Internals ---

    def _on_zoom(self, view: MapView, old: int, new: int) -> None:
        if view.programmatic_zoom:
            return
        if self.autozoom:
            logger.debug("User zoom %d -> %d, autozoom off", old, new)
        self.autozoom = False

    def _finished(self) -> None:
        logger.debug("Session playback finished at %d", self.scheduler.current_year)
        for listener in list(self._finished_listeners):
            listener()
