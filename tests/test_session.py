"""Tests for the histogram aggregator and the map session controls."""

import asyncio

from timetravel.models import Direction, RenderMode
from timetravel.output.histogram import compute_histogram
from timetravel.session import MapSession

from conftest import CURRENT_YEAR, LONDON, PARIS


class TestHistogram:
    def test_counts_alive_per_year(self, make_person, make_dataset):
        ds = make_dataset([
            make_person("A", 1900, 1950, [(1900, *LONDON)], death_year=1950),
            make_person("B", 1920, CURRENT_YEAR, [(1920, *PARIS)]),
        ])
        hist = compute_histogram(ds, current_year=CURRENT_YEAR)
        assert hist.count(1910) == 1
        assert hist.count(1930) == 2
        assert hist.count(1951) == 1
        assert hist.max_count == 2
        assert len(hist.series()) == CURRENT_YEAR - 1900 + 1

    def test_missing_death_assumes_lifespan(self, make_person, make_dataset):
        ds = make_dataset([make_person("B", 1900, CURRENT_YEAR, [(1900, *PARIS)])])
        hist = compute_histogram(ds, assumed_lifespan=100, current_year=CURRENT_YEAR)
        assert hist.count(2000) == 1
        assert hist.count(2001) == 0

    def test_lifespan_capped_at_current_year(self, make_person, make_dataset):
        ds = make_dataset([make_person("C", 1950, CURRENT_YEAR, [(1950, *PARIS)])])
        hist = compute_histogram(ds, current_year=CURRENT_YEAR)
        assert hist.count(CURRENT_YEAR) == 1
        assert hist.max_year == CURRENT_YEAR

    def test_window_starts_at_year_from(self, make_person, make_dataset):
        # no birth fact: the life window opens at the first event
        ds = make_dataset([
            make_person("A", 1900, 1950, [(1900, *LONDON)], death_year=1950),
            make_person("E", 1930, 1950, [(1930, *PARIS)], death_year=1950),
        ])
        hist = compute_histogram(ds, current_year=CURRENT_YEAR)
        assert hist.count(1929) == 1
        assert hist.count(1930) == 2
        assert sum(hist.counts.values()) == 51 + 21

    def test_family(self, family_dataset):
        hist = compute_histogram(family_dataset, current_year=CURRENT_YEAR)
        assert (hist.min_year, hist.max_year) == (1840, 1970)
        # William, Mary, John; George's assumed lifespan runs to 1940
        assert hist.count(1900) == 4


class TestMapSessionStart:
    def test_descendant_map_starts_at_min_year(self, colocated_dataset, config):
        session = MapSession(colocated_dataset, config)
        frame = session.start()
        assert frame.year == colocated_dataset.min_year
        assert session.initial_direction == 1
        assert session.current_year == 1900

    def test_ancestor_map_starts_at_max_year(self, family_dataset, config):
        assert family_dataset.metadata.direction == Direction.UP
        session = MapSession(family_dataset, config)
        frame = session.start()
        assert frame.year == family_dataset.max_year
        assert session.initial_direction == -1

    def test_initial_fit_is_not_a_user_zoom(self, colocated_dataset, config):
        session = MapSession(colocated_dataset, config)
        session.start()
        assert session.autozoom is True
        assert session.view.zoom > 2


class TestMapSessionControls:
    def test_user_zoom_disables_autozoom(self, colocated_dataset, config):
        session = MapSession(colocated_dataset, config)
        session.start()
        zoom = session.view.zoom
        session.user_zoom(zoom - 1)
        assert session.autozoom is False

        session.set_year(1920)
        assert session.view.zoom == zoom - 1

    def test_autozoom_frame_matches_view(self, colocated_dataset, config):
        session = MapSession(colocated_dataset, config)
        session.start()
        frame = session.set_year(1910)
        again = session.resolver.resolve(colocated_dataset, 1910, RenderMode.SPREAD, session.view)
        assert frame.model_dump() == again.model_dump()

    def test_each_setter_is_one_pass(self, colocated_dataset, config):
        session = MapSession(colocated_dataset, config)
        session.start()
        frames = []
        session.on_frame(frames.append)
        session.set_show_parents(True)
        session.set_autozoom(False)
        session.set_mode(RenderMode.CLUSTER)
        session.set_year(1905)
        assert len(frames) == 4
        assert frames[-1].year == 1905

    def test_cluster_mode_clears_registry(self, colocated_dataset, config):
        session = MapSession(colocated_dataset, config)
        session.start()
        session.set_year(1910)
        assert len(session.registry) == 6
        frame = session.set_mode("cluster")
        assert len(session.registry) == 0
        assert frame.clusters
        assert sorted(session.last_diff.removed) == ["P0", "P1", "P2", "P3", "P4", "Q"]

    def test_spread_mode_populates_registry(self, colocated_dataset, config):
        session = MapSession(colocated_dataset, config, mode=RenderMode.CLUSTER)
        session.start()
        assert len(session.registry) == 0
        session.set_mode(RenderMode.SPREAD)
        assert set(session.registry.handles) == {"P0", "Q"}

    def test_user_zoom_reclusters(self, make_person, make_dataset, config):
        north = (LONDON[0] + 0.1, LONDON[1])
        ds = make_dataset([
            make_person("A", 1900, 1950, [(1900, *LONDON)]),
            make_person("B", 1900, 1950, [(1900, *north)]),
        ])
        session = MapSession(ds, config, mode=RenderMode.CLUSTER)
        session.start()
        session.set_autozoom(False)
        session.user_zoom(14)
        assert len(session.set_year(1920).clusters) == 2

        frame = session.user_zoom(4)
        assert len(frame.clusters) == 1
        assert session.frame is frame

    def test_playback_params_round_trip(self, colocated_dataset, config):
        primary = MapSession(colocated_dataset, config)
        primary.start()
        primary.set_show_parents(True)
        primary.set_speed(5)

        secondary = MapSession(colocated_dataset, config)
        params = primary.playback_params()
        direction = params.pop("direction")
        secondary.apply_playback_params(**params)

        assert direction == 1
        assert secondary.show_parents is True
        assert secondary.scheduler.state.speed_multiplier == 5
        assert secondary.view.zoom == primary.view.zoom
        assert secondary.autozoom is True
        assert secondary.current_year == primary.current_year


class TestMapSessionPlayback:
    def test_plays_to_boundary(self, colocated_dataset, config):
        years: list[int] = []
        finished: list[bool] = []

        async def scenario():
            session = MapSession(colocated_dataset, config)
            session.start()
            session.on_frame(lambda f: years.append(f.year))
            session.on_finished(lambda: finished.append(True))
            session.play()
            await session.scheduler.wait_idle()
            session.close()

        asyncio.run(scenario())
        assert years == list(range(1901, 1951))
        assert finished == [True]

    def test_render_size(self, colocated_dataset, config):
        session = MapSession(colocated_dataset, config)
        img = session.render()
        assert img.size == (config.layout.view_width, config.layout.view_height)
