"""SQLite record store for individuals, families, facts and places."""

import json
import logging
import sqlite3

from timetravel.config import Config
from timetravel.models import FactRecord, FamilyRecord, PersonRecord
from timetravel.resolvers.base import PersonRepository

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS individuals (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    thumbnail TEXT,
    is_dead INTEGER NOT NULL DEFAULT 0,
    child_family_ids TEXT NOT NULL DEFAULT '[]',
    spouse_family_ids TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS families (
    id TEXT PRIMARY KEY,
    husband_id TEXT,
    wife_id TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS family_members (
    family_id TEXT NOT NULL REFERENCES families(id) ON DELETE CASCADE,
    person_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    UNIQUE(family_id, person_id)
);

CREATE TABLE IF NOT EXISTS facts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_type TEXT NOT NULL,
    owner_id TEXT NOT NULL,
    seq INTEGER NOT NULL,
    tag TEXT NOT NULL,
    date TEXT,
    place TEXT,
    latitude REAL,
    longitude REAL
);

CREATE TABLE IF NOT EXISTS places (
    name TEXT PRIMARY KEY COLLATE NOCASE,
    latitude REAL NOT NULL,
    longitude REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_facts_owner ON facts(owner_type, owner_id, seq);
CREATE INDEX IF NOT EXISTS idx_family_members_family ON family_members(family_id, position);
CREATE INDEX IF NOT EXISTS idx_individuals_name ON individuals(name);
"""


class GenealogyDB(PersonRepository):
    """SQLite-backed person repository."""

    def __init__(self, config: Config) -> None:
        self.db_path = config.resolved_db_path
        self.url_template = config.profile_url_template
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call init_db() first.")
        return self._conn

    def init_db(self) -> None:
        """Create database and tables."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(SCHEMA_SQL)
        logger.info("Database initialized at %s", self.db_path)

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    # --- Writes ---

    def upsert_person(self, person: PersonRecord, commit: bool = True) -> None:
        """Insert or replace one individual together with its facts."""
        self.conn.execute(
            """INSERT INTO individuals (id, name, thumbnail, is_dead, child_family_ids, spouse_family_ids)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   name = excluded.name,
                   thumbnail = excluded.thumbnail,
                   is_dead = excluded.is_dead,
                   child_family_ids = excluded.child_family_ids,
                   spouse_family_ids = excluded.spouse_family_ids""",
            (
                person.id,
                person.name,
                person.thumbnail,
                int(person.is_dead),
                json.dumps(person.child_family_ids),
                json.dumps(person.spouse_family_ids),
            ),
        )
        self._replace_facts("INDI", person.id, person.facts)
        if commit:
            self.conn.commit()

    def upsert_family(self, family: FamilyRecord, commit: bool = True) -> None:
        """Insert or replace one family, its ordered children and its facts."""
        self.conn.execute(
            """INSERT INTO families (id, husband_id, wife_id) VALUES (?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   husband_id = excluded.husband_id,
                   wife_id = excluded.wife_id""",
            (family.id, family.husband_id, family.wife_id),
        )
        self.conn.execute("DELETE FROM family_members WHERE family_id = ?", (family.id,))
        self.conn.executemany(
            "INSERT OR IGNORE INTO family_members (family_id, person_id, position) VALUES (?, ?, ?)",
            [(family.id, cid, i) for i, cid in enumerate(family.child_ids)],
        )
        self._replace_facts("FAM", family.id, family.facts)
        if commit:
            self.conn.commit()

    def upsert_place(self, name: str, latitude: float, longitude: float, commit: bool = True) -> None:
        self.conn.execute(
            """INSERT INTO places (name, latitude, longitude) VALUES (?, ?, ?)
               ON CONFLICT(name) DO UPDATE SET
                   latitude = excluded.latitude,
                   longitude = excluded.longitude""",
            (name.strip(), latitude, longitude),
        )
        if commit:
            self.conn.commit()

    def _replace_facts(self, owner_type: str, owner_id: str, facts: list[FactRecord]) -> None:
        self.conn.execute(
            "DELETE FROM facts WHERE owner_type = ? AND owner_id = ?", (owner_type, owner_id)
        )
        self.conn.executemany(
            """INSERT INTO facts (owner_type, owner_id, seq, tag, date, place, latitude, longitude)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            [
                (owner_type, owner_id, i, f.tag, f.date, f.place, f.latitude, f.longitude)
                for i, f in enumerate(facts)
            ],
        )

    # --- PersonRepository ---

    def get_person(self, person_id: str) -> PersonRecord | None:
        row = self.conn.execute(
            "SELECT * FROM individuals WHERE id = ?", (person_id,)
        ).fetchone()
        if not row:
            return None
        return PersonRecord(
            id=row["id"],
            name=row["name"],
            url=self.url_template.format(xref=row["id"]),
            thumbnail=row["thumbnail"],
            is_dead=bool(row["is_dead"]),
            facts=self._facts("INDI", row["id"]),
            child_family_ids=json.loads(row["child_family_ids"]),
            spouse_family_ids=json.loads(row["spouse_family_ids"]),
        )

    def get_family(self, family_id: str) -> FamilyRecord | None:
        row = self.conn.execute(
            "SELECT * FROM families WHERE id = ?", (family_id,)
        ).fetchone()
        if not row:
            return None
        children = self.conn.execute(
            "SELECT person_id FROM family_members WHERE family_id = ? ORDER BY position",
            (family_id,),
        ).fetchall()
        return FamilyRecord(
            id=row["id"],
            husband_id=row["husband_id"],
            wife_id=row["wife_id"],
            child_ids=[r["person_id"] for r in children],
            facts=self._facts("FAM", row["id"]),
        )

    def find_place(self, name: str) -> tuple[float, float] | None:
        if not name or not name.strip():
            return None
        row = self.conn.execute(
            "SELECT latitude, longitude FROM places WHERE name = ?", (name.strip(),)
        ).fetchone()
        if not row:
            return None
        return row["latitude"], row["longitude"]

    def _facts(self, owner_type: str, owner_id: str) -> list[FactRecord]:
        rows = self.conn.execute(
            """SELECT tag, date, place, latitude, longitude FROM facts
               WHERE owner_type = ? AND owner_id = ? ORDER BY seq""",
            (owner_type, owner_id),
        ).fetchall()
        return [FactRecord(**dict(r)) for r in rows]

    # --- Queries ---

    def count_individuals(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM individuals").fetchone()[0]

    def count_families(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM families").fetchone()[0]

    def count_places(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM places").fetchone()[0]

    def list_individuals(self, name: str | None = None, limit: int = 100) -> list[dict]:
        """Id, name and dead flag of individuals, optionally filtered by name substring."""
        sql = "SELECT id, name, is_dead FROM individuals"
        params: list = []
        if name:
            sql += " WHERE name LIKE ?"
            params.append(f"%{name}%")
        sql += " ORDER BY name, id LIMIT ?"
        params.append(limit)
        rows = self.conn.execute(sql, params).fetchall()
        return [
            {"id": r["id"], "name": r["name"], "is_dead": bool(r["is_dead"])}
            for r in rows
        ]
