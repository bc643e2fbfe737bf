"""GEDCOM ingestion: read a file with ged4py and load the record store."""

import logging
import re
from datetime import date
from pathlib import Path

from ged4py import GedcomReader

from timetravel.config import Config
from timetravel.db import GenealogyDB
from timetravel.models import FactRecord, FamilyRecord, PersonRecord
from timetravel.resolvers.dates import parse_date
from timetravel.resolvers.graph_walker import BIRTH_TAGS, DEATH_TAGS

logger = logging.getLogger(__name__)

_COORD = re.compile(r"^\s*([NSEW])?\s*(-?\d+(?:\.\d+)?)\s*$", re.IGNORECASE)


class IngestionResult:
    """Summary of an ingestion run."""

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name
        self.individuals = 0
        self.families = 0
        self.facts = 0
        self.places = 0
        self.facts_skipped = 0

    def __repr__(self) -> str:
        parts = [
            f"IngestionResult({self.source_name}: ",
            f"individuals={self.individuals}, families={self.families}, ",
            f"facts={self.facts}, places={self.places}",
        ]
        if self.facts_skipped:
            parts.append(f", untracked={self.facts_skipped}")
        parts.append(")")
        return "".join(parts)


def normalize_xref(ref) -> str | None:
    """GEDCOM pointer or record → bare xref ("@I1@" → "I1")."""
    if ref is None:
        return None
    for attr in ("xref_id", "xref", "value"):
        inner = getattr(ref, attr, None)
        if isinstance(inner, str):
            ref = inner
            break
    s = str(ref).strip().strip("@")
    return s or None


def parse_coordinate(value) -> float | None:
    """"N50.5" → 50.5, "W1.25" → -1.25, "-3.0" → -3.0."""
    if value is None:
        return None
    m = _COORD.match(str(value))
    if not m:
        return None
    number = float(m.group(2))
    if m.group(1) and m.group(1).upper() in ("S", "W"):
        number = -abs(number)
    return number


def format_name(value) -> str:
    """NAME value → display name, surname slashes removed."""
    if value is None:
        return ""
    if isinstance(value, tuple):
        text = " ".join(str(part) for part in value if part)
    else:
        text = str(value)
    return " ".join(text.replace("/", " ").split())


def _sub_value(record, tag: str):
    sub = record.sub_tag(tag)
    if sub is not None and sub.value:
        return sub.value
    return None


def _read_fact(sub) -> FactRecord:
    date_value = _sub_value(sub, "DATE")
    place = None
    latitude = longitude = None

    plac = sub.sub_tag("PLAC")
    if plac is not None:
        if plac.value:
            place = str(plac.value).strip()
        coords = plac.sub_tag("MAP")
        if coords is not None:
            latitude = parse_coordinate(_sub_value(coords, "LATI"))
            longitude = parse_coordinate(_sub_value(coords, "LONG"))
    if latitude is None or longitude is None:
        latitude = longitude = None

    return FactRecord(
        tag=sub.tag,
        date=str(date_value) if date_value is not None else None,
        place=place,
        latitude=latitude,
        longitude=longitude,
    )


def _is_dead(facts: list[FactRecord], max_alive_age: int, current_year: int) -> bool:
    if any(f.tag in DEATH_TAGS for f in facts):
        return True
    for tag in BIRTH_TAGS:
        for fact in facts:
            if fact.tag != tag:
                continue
            bounds = parse_date(fact.date)
            if bounds is not None:
                return current_year - bounds.minimum > max_alive_age
    return False


def ingest_gedcom(
    gedcom_path: Path,
    db: GenealogyDB,
    config: Config,
    current_year: int | None = None,
) -> IngestionResult:
    """Load individuals, families, tracked facts and coordinates from a GEDCOM file.

    Birth and death facts are always kept since life windows depend on them.
    Places that carry MAP coordinates are added to the gazetteer so that
    facts naming the same place without coordinates can still be located.
    """
    gedcom_path = Path(gedcom_path)
    if not gedcom_path.is_file():
        raise FileNotFoundError(f"GEDCOM file not found: {gedcom_path}")

    current_year = current_year or date.today().year
    indi_tags = set(config.tracking.indi_tags) | set(BIRTH_TAGS) | set(DEATH_TAGS)
    fam_tags = set(config.tracking.fam_tags)
    result = IngestionResult(gedcom_path.name)
    places: dict[str, tuple[float, float]] = {}

    logger.info("Reading %s", gedcom_path)

    with GedcomReader(str(gedcom_path)) as reader:
        for record in reader.records0("INDI"):
            xref = normalize_xref(record.xref_id)
            if xref is None:
                continue
            facts: list[FactRecord] = []
            child_families: list[str] = []
            spouse_families: list[str] = []
            thumbnail = None
            for sub in record.sub_records:
                if sub.tag == "FAMC" and sub.value:
                    child_families.append(normalize_xref(sub.value))
                elif sub.tag == "FAMS" and sub.value:
                    spouse_families.append(normalize_xref(sub.value))
                elif sub.tag == "OBJE" and thumbnail is None:
                    file_value = _sub_value(sub, "FILE")
                    thumbnail = str(file_value) if file_value else None
                elif sub.tag in indi_tags:
                    facts.append(_read_fact(sub))
                elif sub.tag not in ("NAME", "SEX"):
                    result.facts_skipped += 1

            _collect_places(facts, places)
            db.upsert_person(PersonRecord(
                id=xref,
                name=format_name(_sub_value(record, "NAME")) or xref,
                url=config.profile_url_template.format(xref=xref),
                thumbnail=thumbnail,
                is_dead=_is_dead(facts, config.query.max_alive_age, current_year),
                facts=facts,
                child_family_ids=child_families,
                spouse_family_ids=spouse_families,
            ), commit=False)
            result.individuals += 1
            result.facts += len(facts)

        for record in reader.records0("FAM"):
            xref = normalize_xref(record.xref_id)
            if xref is None:
                continue
            husband = wife = None
            children: list[str] = []
            facts = []
            for sub in record.sub_records:
                if sub.tag == "HUSB" and sub.value:
                    husband = normalize_xref(sub.value)
                elif sub.tag == "WIFE" and sub.value:
                    wife = normalize_xref(sub.value)
                elif sub.tag == "CHIL" and sub.value:
                    children.append(normalize_xref(sub.value))
                elif sub.tag in fam_tags:
                    facts.append(_read_fact(sub))

            _collect_places(facts, places)
            db.upsert_family(FamilyRecord(
                id=xref,
                husband_id=husband,
                wife_id=wife,
                child_ids=children,
                facts=facts,
            ), commit=False)
            result.families += 1
            result.facts += len(facts)

    for name, (lat, lng) in places.items():
        db.upsert_place(name, lat, lng, commit=False)
    result.places = len(places)
    db.conn.commit()

    logger.info("Ingestion complete: %s", result)
    return result


def _collect_places(facts: list[FactRecord], places: dict[str, tuple[float, float]]) -> None:
    for fact in facts:
        if fact.place and fact.latitude is not None and fact.longitude is not None:
            places.setdefault(fact.place, (fact.latitude, fact.longitude))
