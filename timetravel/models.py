"""Pydantic models for the time travel map."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Direction(str, Enum):
    """Graph traversal direction from the root person."""
    UP = "UP"  # ancestors
    DOWN = "DOWN"  # descendants


class RenderMode(str, Enum):
    SPREAD = "spread"
    CLUSTER = "cluster"


class QueryError(str, Enum):
    ROOT_NOT_FOUND = "root_not_found"
    EMPTY_DATASET = "empty_dataset"


# --- Record models (what comes out of the genealogical store) ---


class FactRecord(BaseModel):
    """One raw GEDCOM fact as stored, before any year/coordinate resolution."""
    tag: str
    date: str | None = None
    place: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class FamilyRecord(BaseModel):
    id: str
    husband_id: str | None = None
    wife_id: str | None = None
    child_ids: list[str] = Field(default_factory=list)
    facts: list[FactRecord] = Field(default_factory=list)

    @property
    def spouse_ids(self) -> list[str]:
        return [pid for pid in (self.husband_id, self.wife_id) if pid]


class PersonRecord(BaseModel):
    id: str
    name: str
    url: str
    thumbnail: str | None = None
    is_dead: bool = False
    facts: list[FactRecord] = Field(default_factory=list)
    child_family_ids: list[str] = Field(default_factory=list)  # birth families (FAMC)
    spouse_family_ids: list[str] = Field(default_factory=list)  # FAMS


# --- Dataset models (what the walker emits) ---


class Event(BaseModel):
    """A located, dated moment in one person's life."""
    model_config = ConfigDict(frozen=True)

    event_type: str
    label: str
    year: int
    raw_date: str = ""
    coordinate: tuple[float, float]
    place: str = ""

    @property
    def lat(self) -> float:
        return self.coordinate[0]

    @property
    def lng(self) -> float:
        return self.coordinate[1]


class Person(BaseModel):
    id: str
    display_name: str
    url: str
    thumbnail: str | None = None
    father_id: str | None = None
    mother_id: str | None = None
    year_from: int
    year_to: int
    death_year: int | None = None
    events: list[Event] = Field(default_factory=list)

    def is_active(self, year: int) -> bool:
        return self.year_from <= year <= self.year_to

    @property
    def parent_ids(self) -> list[str]:
        return [pid for pid in (self.father_id, self.mother_id) if pid]


class DatasetMetadata(BaseModel):
    min_year: int
    max_year: int
    root_id: str
    direction: Direction


class Dataset(BaseModel):
    metadata: DatasetMetadata
    individuals: list[Person]

    @property
    def min_year(self) -> int:
        return self.metadata.min_year

    @property
    def max_year(self) -> int:
        return self.metadata.max_year

    def person(self, person_id: str) -> Person | None:
        for p in self.individuals:
            if p.id == person_id:
                return p
        return None


class WalkResult(BaseModel):
    """Outcome of one graph walk: a dataset, or a named query failure."""
    dataset: Dataset | None = None
    error: QueryError | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.dataset is not None

    def to_json_dict(self) -> dict:
        if self.dataset is None:
            return {"error": self.message or str(self.error)}
        return self.dataset.model_dump(mode="json")


# --- Spatial models (derived per frame) ---


class PositionAtYear(BaseModel):
    lat: float
    lng: float
    source_event: Event


class ResolvedPlacement(BaseModel):
    person_id: str
    lat: float
    lng: float
    is_displaced: bool = False
    origin_lat: float | None = None
    origin_lng: float | None = None
    angle: float | None = None


class GroupOrigin(BaseModel):
    """Center dot drawn at the shared coordinate of a placement group."""
    lat: float
    lng: float
    size: int


class ParentLink(BaseModel):
    child_id: str
    parent_id: str
    from_lat: float
    from_lng: float
    to_lat: float
    to_lng: float


class MarkerCluster(BaseModel):
    lat: float
    lng: float
    person_ids: list[str]

    @property
    def count(self) -> int:
        return len(self.person_ids)


class Bounds(BaseModel):
    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_points(cls, points: list[tuple[float, float]]) -> "Bounds | None":
        if not points:
            return None
        lats = [p[0] for p in points]
        lngs = [p[1] for p in points]
        return cls(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))


class Frame(BaseModel):
    """Everything needed to draw the map for one year."""
    year: int
    mode: RenderMode
    placements: list[ResolvedPlacement] = Field(default_factory=list)
    origins: list[GroupOrigin] = Field(default_factory=list)
    clusters: list[MarkerCluster] = Field(default_factory=list)
    parent_links: list[ParentLink] = Field(default_factory=list)
    bounds: Bounds | None = None

    def placement(self, person_id: str) -> ResolvedPlacement | None:
        for p in self.placements:
            if p.person_id == person_id:
                return p
        return None


# --- Playback ---


class PlaybackState(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    current_year: int
    direction: Literal[1, -1] = 1  # +1 forward, -1 reverse
    is_playing: bool = False
    speed_multiplier: int = Field(1, ge=1)
