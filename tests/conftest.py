"""Shared test fixtures for timetravel tests."""

import pytest

from timetravel.config import Config, PlaybackConfig, RecordingConfig
from timetravel.db import GenealogyDB
from timetravel.models import (
    Dataset,
    DatasetMetadata,
    Direction,
    Event,
    FactRecord,
    FamilyRecord,
    Person,
    PersonRecord,
)
from timetravel.resolvers.graph_walker import PersonGraphWalker

LONDON = (51.5074, -0.1278)
PARIS = (48.8566, 2.3522)
BOSTON = (42.3601, -71.0589)

CURRENT_YEAR = 2024


@pytest.fixture()
def config(tmp_path):
    return Config(
        db_path=str(tmp_path / "test.db"),
        playback=PlaybackConfig(base_delay=0.0),
        recording=RecordingConfig(output_dir=str(tmp_path / "recordings"), ready_timeout=5.0),
    )


@pytest.fixture()
def tmp_db(config):
    """Create a GenealogyDB backed by a temp file."""
    db = GenealogyDB(config)
    db.init_db()
    yield db
    db.close()


@pytest.fixture()
def populated_db(tmp_db):
    """DB with three generations of one family.

    I4 George (no located facts)
     └─ F2 ─ I2 William + I3 Mary ─ F1 ─ I1 John
    I6 Nobody has no facts and no families.
    """
    db = tmp_db
    db.upsert_place("London", *LONDON)

    db.upsert_person(PersonRecord(
        id="I1", name="John Smith", url="individual/I1", is_dead=True,
        facts=[
            FactRecord(tag="BIRT", date="12 MAR 1900", place="London", latitude=LONDON[0], longitude=LONDON[1]),
            FactRecord(tag="OCCU", date="1925", place=None),
            FactRecord(tag="DEAT", date="1970", place="Boston", latitude=BOSTON[0], longitude=BOSTON[1]),
        ],
        child_family_ids=["F1"],
    ))
    db.upsert_person(PersonRecord(
        id="I2", name="William Smith", url="individual/I2", is_dead=True,
        facts=[
            FactRecord(tag="BIRT", date="ABT 1870", place="London"),
            FactRecord(tag="DEAT", date="1940", place="London"),
        ],
        child_family_ids=["F2"],
        spouse_family_ids=["F1"],
    ))
    db.upsert_person(PersonRecord(
        id="I3", name="Mary Jones", url="individual/I3", is_dead=True,
        facts=[
            FactRecord(tag="BIRT", date="BET 1872 AND 1875", place="Paris", latitude=PARIS[0], longitude=PARIS[1]),
        ],
        spouse_family_ids=["F1"],
    ))
    db.upsert_person(PersonRecord(
        id="I4", name="George Smith", url="individual/I4", is_dead=True,
        facts=[FactRecord(tag="BIRT", date="1840")],
        spouse_family_ids=["F2"],
    ))
    db.upsert_person(PersonRecord(id="I6", name="Nobody", url="individual/I6"))

    db.upsert_family(FamilyRecord(
        id="F1", husband_id="I2", wife_id="I3", child_ids=["I1"],
        facts=[FactRecord(tag="MARR", date="1898", place="London")],
    ))
    db.upsert_family(FamilyRecord(id="F2", husband_id="I4", child_ids=["I2"]))
    return db


@pytest.fixture()
def walker(populated_db, config):
    return PersonGraphWalker(populated_db, config, current_year=CURRENT_YEAR)


@pytest.fixture()
def family_dataset(walker):
    """Ancestors of I1: John, William, Mary, George."""
    return walker.walk("I1", Direction.UP, 5).dataset


@pytest.fixture()
def make_person():
    """Factory for in-memory Persons: events given as (year, lat, lng)."""

    def _make(
        pid: str,
        year_from: int,
        year_to: int,
        events: list[tuple[int, float, float]],
        father_id: str | None = None,
        mother_id: str | None = None,
        death_year: int | None = None,
    ) -> Person:
        return Person(
            id=pid,
            display_name=f"Person {pid}",
            url=f"individual/{pid}",
            father_id=father_id,
            mother_id=mother_id,
            year_from=year_from,
            year_to=year_to,
            death_year=death_year,
            events=[
                Event(event_type="RESI", label="Residence", year=y, coordinate=(lat, lng))
                for y, lat, lng in events
            ],
        )

    return _make


@pytest.fixture()
def make_dataset():
    def _make(people: list[Person], direction: Direction = Direction.DOWN) -> Dataset:
        years = [y for p in people for y in (p.year_from, p.year_to)]
        return Dataset(
            metadata=DatasetMetadata(
                min_year=min(years),
                max_year=max(years),
                root_id=people[0].id,
                direction=direction,
            ),
            individuals=people,
        )

    return _make


@pytest.fixture()
def colocated_dataset(make_person, make_dataset):
    """Five people in London 1900-1950, one in Paris."""
    people = [
        make_person(f"P{i}", 1900 + i, 1950, [(1900 + i, *LONDON)])
        for i in range(5)
    ]
    people.append(make_person("Q", 1900, 1950, [(1900, *PARIS)]))
    return make_dataset(people)
