"""Render one map frame to an image.

Layers, bottom to top: graticule, parent links (dashed), origin lines,
center dots, callouts (spread) or cluster bubbles (cluster), year caption,
histogram strip with the current year highlighted.
"""

import logging
import math
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from timetravel.models import Frame, Person, RenderMode
from timetravel.output.histogram import Histogram
from timetravel.spatial.projection import MapView

logger = logging.getLogger(__name__)

# --- Fonts ---

_FONT_BOLD = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"
_FONT_REGULAR = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"


def _font(size: int, bold: bool = False) -> ImageFont.ImageFont:
    path = _FONT_BOLD if bold else _FONT_REGULAR
    try:
        return ImageFont.truetype(path, size)
    except OSError:
        return ImageFont.load_default()


# --- Colors ---

BG = (13, 17, 23)
GRID = (33, 38, 45)
TEXT = (230, 237, 243)
TEXT_DIM = (110, 118, 129)
CENTER_DOT = (13, 110, 253)
ORIGIN_LINE = (153, 153, 153)
PARENT_LINE = (120, 120, 120)
CALLOUT_BG = (22, 27, 34)
CALLOUT_BORDER = (88, 166, 255)
CLUSTER_FILL = (63, 185, 80)
HIST_BAR = (204, 204, 204)
HIST_HIGHLIGHT = (13, 110, 253)

HISTOGRAM_HEIGHT = 60
PADDING = 16


def person_color(person_id: str) -> tuple[int, int, int]:
    """Stable per-person color derived from the id string."""
    h = 0
    for ch in person_id:
        h = (ord(ch) + ((h << 5) - h)) & 0xFFFFFFFF
    h &= 0x00FFFFFF
    return (h >> 16) & 0xFF, (h >> 8) & 0xFF, h & 0xFF


def render_frame(
    frame: Frame,
    view: MapView,
    people: dict[str, Person],
    histogram: Histogram | None = None,
    show_callouts: bool = True,
) -> Image.Image:
    """Draw `frame` as seen through `view`."""
    img = Image.new("RGB", (view.width, view.height), BG)
    draw = ImageDraw.Draw(img)

    _draw_graticule(draw, view)

    for link in frame.parent_links:
        a = view.to_screen(link.from_lat, link.from_lng)
        b = view.to_screen(link.to_lat, link.to_lng)
        _dashed_line(draw, a, b, PARENT_LINE)

    if frame.mode == RenderMode.SPREAD:
        for placement in frame.placements:
            if placement.origin_lat is None or placement.origin_lng is None:
                continue
            o = view.to_screen(placement.origin_lat, placement.origin_lng)
            p = view.to_screen(placement.lat, placement.lng)
            draw.line([o, p], fill=ORIGIN_LINE, width=1)

        for origin in frame.origins:
            x, y = view.to_screen(origin.lat, origin.lng)
            draw.ellipse([x - 5, y - 5, x + 5, y + 5], fill=CENTER_DOT, outline=TEXT)

        label_font = _font(11)
        for placement in frame.placements:
            x, y = view.to_screen(placement.lat, placement.lng)
            person = people.get(placement.person_id)
            if not show_callouts or person is None:
                draw.ellipse([x - 6, y - 6, x + 6, y + 6], fill=person_color(placement.person_id))
                continue
            _callout(draw, (x, y), person, label_font)
    else:
        count_font = _font(12, bold=True)
        for cluster in frame.clusters:
            x, y = view.to_screen(cluster.lat, cluster.lng)
            r = 8 if cluster.count == 1 else 12 + min(cluster.count, 50) ** 0.5 * 2
            draw.ellipse([x - r, y - r, x + r, y + r], fill=CLUSTER_FILL, outline=TEXT)
            if cluster.count > 1:
                label = str(cluster.count)
                w = draw.textlength(label, font=count_font)
                draw.text((x - w / 2, y - 7), label, font=count_font, fill=BG)

    draw.text((PADDING, PADDING), str(frame.year), font=_font(32, bold=True), fill=TEXT)
    draw.text(
        (PADDING, PADDING + 40),
        f"{len(frame.placements)} people",
        font=_font(12),
        fill=TEXT_DIM,
    )

    if histogram is not None:
        _draw_histogram(draw, view, histogram, frame.year)

    return img


def save_frame(img: Image.Image, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    img.save(output_path)
    logger.info("Frame written to %s", output_path)
    return output_path


def _callout(draw: ImageDraw.ImageDraw, at: tuple[float, float], person: Person, font) -> None:
    name = person.display_name
    years = f"({person.year_from}-{person.year_to})"
    w = max(draw.textlength(name, font=font), draw.textlength(years, font=font)) + 10
    h = 32
    x, y = at
    box = [x - w / 2, y - h / 2, x + w / 2, y + h / 2]
    draw.rounded_rectangle(box, radius=5, fill=CALLOUT_BG, outline=CALLOUT_BORDER)
    draw.text((box[0] + 5, box[1] + 3), name, font=font, fill=TEXT)
    draw.text((box[0] + 5, box[1] + 17), years, font=font, fill=TEXT_DIM)


def _dashed_line(draw, a, b, fill, dash: float = 4.0, gap: float = 4.0) -> None:
    (x0, y0), (x1, y1) = a, b
    length = math.hypot(x1 - x0, y1 - y0)
    if length == 0:
        return
    dx, dy = (x1 - x0) / length, (y1 - y0) / length
    pos = 0.0
    while pos < length:
        end = min(pos + dash, length)
        draw.line(
            [(x0 + dx * pos, y0 + dy * pos), (x0 + dx * end, y0 + dy * end)],
            fill=fill, width=1,
        )
        pos = end + gap


def _graticule_step(zoom: int) -> float:
    if zoom < 4:
        return 30.0
    if zoom < 7:
        return 5.0
    if zoom < 10:
        return 1.0
    return 0.1


def _draw_graticule(draw: ImageDraw.ImageDraw, view: MapView) -> None:
    step = _graticule_step(view.zoom)
    north, west = _corner(view, 0, 0)
    south, east = _corner(view, view.width, view.height)

    lng = math.floor(west / step) * step
    while lng <= east:
        x, _ = view.to_screen(view.center_lat, lng)
        draw.line([(x, 0), (x, view.height)], fill=GRID, width=1)
        lng += step

    lat = math.floor(south / step) * step
    while lat <= north:
        _, y = view.to_screen(lat, view.center_lng)
        draw.line([(0, y), (view.width, y)], fill=GRID, width=1)
        lat += step


def _corner(view: MapView, sx: float, sy: float) -> tuple[float, float]:
    cx, cy = view.project(view.center_lat, view.center_lng)
    return view.unproject(cx + sx - view.width / 2, cy + sy - view.height / 2)


def _draw_histogram(
    draw: ImageDraw.ImageDraw,
    view: MapView,
    histogram: Histogram,
    highlight_year: int,
) -> None:
    if histogram.max_count == 0:
        return
    span = histogram.max_year - histogram.min_year
    if span <= 0:
        return

    top = view.height - HISTOGRAM_HEIGHT
    width = view.width - 2 * PADDING
    bar_w = max(1.0, width / (span + 1))
    draw.rectangle([0, top, view.width, view.height], fill=BG)

    for year, count in histogram.series():
        if count == 0:
            continue
        bar_h = count / histogram.max_count * (HISTOGRAM_HEIGHT - 8)
        x = PADDING + (year - histogram.min_year) / span * width
        color = HIST_HIGHLIGHT if year == highlight_year else HIST_BAR
        draw.rectangle([x, view.height - bar_h, x + bar_w, view.height], fill=color)
