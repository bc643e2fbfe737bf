"""Web-Mercator map view: projection, fit-to-bounds and programmatic zoom.

Pixel coordinates are world pixels at the view's zoom (256 px tiles), the
same space Leaflet's layer points live in up to a constant offset.
"""

import logging
import math
from collections.abc import Callable
from contextlib import contextmanager

from timetravel.models import Bounds

logger = logging.getLogger(__name__)

TILE_SIZE = 256
MAX_LATITUDE = 85.0511287798

ZoomListener = Callable[["MapView", int, int], None]


def project(lat: float, lng: float, zoom: float) -> tuple[float, float]:
    """(lat, lng) → world pixel (x, y) at `zoom`."""
    scale = TILE_SIZE * 2 ** zoom
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))
    siny = math.sin(math.radians(lat))
    x = (lng + 180.0) / 360.0 * scale
    y = (0.5 - math.log((1 + siny) / (1 - siny)) / (4 * math.pi)) * scale
    return x, y


def unproject(x: float, y: float, zoom: float) -> tuple[float, float]:
    """World pixel (x, y) at `zoom` → (lat, lng)."""
    scale = TILE_SIZE * 2 ** zoom
    lng = x / scale * 360.0 - 180.0
    n = math.pi - 2 * math.pi * y / scale
    lat = math.degrees(math.atan(math.sinh(n)))
    return lat, lng


class MapView:
    """Center, zoom and pixel size of the visible map."""

    def __init__(
        self,
        width: int = 1200,
        height: int = 800,
        center: tuple[float, float] = (20.0, 0.0),
        zoom: int = 2,
        min_zoom: int = 0,
        max_zoom: int = 18,
    ) -> None:
        self.width = width
        self.height = height
        self.center_lat, self.center_lng = center
        self.zoom = zoom
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.programmatic_zoom = False
        self._zoom_listeners: list[ZoomListener] = []

    def on_zoom(self, listener: ZoomListener) -> None:
        """Register a callback fired before every zoom change."""
        self._zoom_listeners.append(listener)

    def project(self, lat: float, lng: float) -> tuple[float, float]:
        return project(lat, lng, self.zoom)

    def unproject(self, x: float, y: float) -> tuple[float, float]:
        return unproject(x, y, self.zoom)

    def to_screen(self, lat: float, lng: float) -> tuple[float, float]:
        """(lat, lng) → pixel relative to the view's top-left corner."""
        cx, cy = self.project(self.center_lat, self.center_lng)
        x, y = self.project(lat, lng)
        return x - cx + self.width / 2, y - cy + self.height / 2

    def pixels_per_degree_lat(self, lat: float, degrees: float) -> float:
        """Vertical pixel length of `degrees` of latitude starting at `lat`."""
        _, y0 = self.project(lat, 0.0)
        _, y1 = self.project(lat + degrees, 0.0)
        return abs(y1 - y0)

    def set_view(self, lat: float, lng: float, zoom: int) -> None:
        zoom = max(self.min_zoom, min(self.max_zoom, int(zoom)))
        if zoom != self.zoom:
            for listener in self._zoom_listeners:
                listener(self, self.zoom, zoom)
        self.center_lat, self.center_lng = lat, lng
        self.zoom = zoom

    def user_zoom(self, zoom: int) -> None:
        """Zoom triggered by direct user interaction."""
        self.set_view(self.center_lat, self.center_lng, zoom)

    @contextmanager
    def programmatic(self):
        """Mark view changes inside the block as system-driven."""
        previous = self.programmatic_zoom
        self.programmatic_zoom = True
        try:
            yield self
        finally:
            self.programmatic_zoom = previous

    def bounds_zoom(self, bounds: Bounds, padding: int = 0) -> int:
        """Highest integer zoom at which `bounds` fits inside the padded view."""
        avail_w = max(1, self.width - 2 * padding)
        avail_h = max(1, self.height - 2 * padding)
        x0, y0 = project(bounds.north, bounds.west, 0)
        x1, y1 = project(bounds.south, bounds.east, 0)
        span_w = abs(x1 - x0)
        span_h = abs(y1 - y0)
        if span_w == 0 and span_h == 0:
            return self.max_zoom
        scale = min(
            avail_w / span_w if span_w else math.inf,
            avail_h / span_h if span_h else math.inf,
        )
        zoom = math.floor(math.log2(scale))
        return max(self.min_zoom, min(self.max_zoom, zoom))

    def fit_bounds(self, bounds: Bounds, padding: int = 0) -> None:
        zoom = self.bounds_zoom(bounds, padding)
        x0, y0 = project(bounds.north, bounds.west, zoom)
        x1, y1 = project(bounds.south, bounds.east, zoom)
        lat, lng = unproject((x0 + x1) / 2, (y0 + y1) / 2, zoom)
        logger.debug("fit_bounds → (%.4f, %.4f) z%d", lat, lng, zoom)
        self.set_view(lat, lng, zoom)
