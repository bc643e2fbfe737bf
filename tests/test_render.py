"""Tests for the Pillow frame renderer."""

from timetravel.models import RenderMode
from timetravel.output.frame_renderer import BG, person_color, render_frame, save_frame
from timetravel.output.histogram import compute_histogram
from timetravel.spatial.positions import YearPositionResolver
from timetravel.spatial.projection import MapView

from conftest import LONDON


def _frame(dataset, year, mode=RenderMode.SPREAD, show_parents=False):
    view = MapView(width=400, height=300, center=LONDON, zoom=12)
    frame = YearPositionResolver().resolve(dataset, year, mode, view, show_parents=show_parents)
    return frame, view


class TestRenderFrame:
    def test_spread_draws_markers(self, colocated_dataset):
        frame, view = _frame(colocated_dataset, 1910)
        people = {p.id: p for p in colocated_dataset.individuals}
        img = render_frame(frame, view, people)
        assert img.size == (400, 300)
        assert img.mode == "RGB"
        # center dot sits on the London origin
        x, y = view.to_screen(*LONDON)
        assert img.getpixel((int(x), int(y))) != BG

    def test_cluster_mode(self, colocated_dataset):
        frame, view = _frame(colocated_dataset, 1910, RenderMode.CLUSTER)
        img = render_frame(frame, view, {})
        x, y = view.to_screen(*LONDON)
        # inside the bubble, clear of the count label
        assert img.getpixel((int(x) + 11, int(y))) != BG

    def test_with_histogram_and_parents(self, family_dataset):
        view = MapView(width=400, height=300, center=LONDON, zoom=5)
        frame = YearPositionResolver().resolve(
            family_dataset, 1900, RenderMode.SPREAD, view, show_parents=True,
        )
        assert frame.parent_links
        hist = compute_histogram(family_dataset, current_year=2024)
        people = {p.id: p for p in family_dataset.individuals}
        img = render_frame(frame, view, people, histogram=hist, show_callouts=False)
        assert img.size == (400, 300)

    def test_save_frame(self, colocated_dataset, tmp_path):
        frame, view = _frame(colocated_dataset, 1910)
        path = save_frame(render_frame(frame, view, {}), tmp_path / "out" / "frame.png")
        assert path.exists()


def test_person_color_stable():
    assert person_color("I1") == person_color("I1")
    assert person_color("I1") != person_color("I2")
    assert all(0 <= c <= 255 for c in person_color("X123"))
