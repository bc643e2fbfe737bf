#!/usr/bin/env python3
"""Time Travel Map MCP Server: map datasets, frames and histograms over MCP."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

from mcp.server.fastmcp import FastMCP

from timetravel.config import load_config
from timetravel.db import GenealogyDB
from timetravel.ingest import ingest_gedcom as _ingest_gedcom
from timetravel.resolvers.graph_walker import PersonGraphWalker
from timetravel.session import MapSession

mcp = FastMCP("timetravel")
logger = logging.getLogger(__name__)

# Redirect all logging to stderr so stdout stays clean for MCP stdio transport
logging.basicConfig(
    stream=sys.stderr,
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

_db: GenealogyDB | None = None
_config = None


def _get_config():
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _get_db() -> GenealogyDB:
    global _db
    if _db is None:
        _db = GenealogyDB(_get_config())
        _db.init_db()
    return _db


def _session(root_id: str, direction: str, generations: Optional[int], mode: str = "spread") -> MapSession:
    result = PersonGraphWalker(_get_db(), _get_config()).walk(root_id, direction, generations)
    if not result.ok:
        raise ValueError(result.message)
    session = MapSession(result.dataset, _get_config(), mode=mode)
    session.start()
    return session


@mcp.tool()
def get_map_data(root_id: str, direction: str = "UP", generations: Optional[int] = None) -> str:
    """Map dataset for a root individual. Direction UP walks ancestors, DOWN descendants."""
    try:
        result = PersonGraphWalker(_get_db(), _get_config()).walk(root_id, direction, generations)
        return json.dumps(result.to_json_dict())
    except ValueError as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def get_frame(
    root_id: str,
    year: int,
    direction: str = "UP",
    generations: Optional[int] = None,
    mode: str = "spread",
    show_parents: bool = False,
) -> str:
    """Resolved marker positions for one year. Mode is 'spread' or 'cluster'."""
    try:
        session = _session(root_id, direction, generations, mode)
        session.show_parents = show_parents
        frame = session.set_year(year)
        return json.dumps(frame.model_dump(mode="json"))
    except ValueError as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def get_histogram(root_id: str, direction: str = "UP", generations: Optional[int] = None) -> str:
    """Number of people alive in each year of the map's span."""
    try:
        result = PersonGraphWalker(_get_db(), _get_config()).walk(root_id, direction, generations)
        if not result.ok:
            raise ValueError(result.message)
        hist = MapSession(result.dataset, _get_config()).histogram
        return json.dumps({
            "min_year": hist.min_year,
            "max_year": hist.max_year,
            "max_count": hist.max_count,
            "counts": {str(y): c for y, c in hist.series()},
        })
    except ValueError as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def ingest_gedcom(gedcom_path: str) -> str:
    """Load a GEDCOM file into the record store."""
    try:
        result = _ingest_gedcom(Path(gedcom_path).expanduser(), _get_db(), _get_config())
        return json.dumps({
            "source": result.source_name,
            "individuals": result.individuals,
            "families": result.families,
            "facts": result.facts,
            "places": result.places,
        })
    except (ValueError, FileNotFoundError) as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def list_individuals(name: Optional[str] = None, limit: int = 100) -> str:
    """List individuals (id, name, dead flag), optionally filtered by name substring."""
    return json.dumps(_get_db().list_individuals(name=name, limit=limit))


if __name__ == "__main__":
    mcp.run()
