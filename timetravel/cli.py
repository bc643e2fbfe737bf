"""CLI entry point for the time travel map."""

import argparse
import asyncio
import json
import logging
from pathlib import Path

from timetravel.config import load_config
from timetravel.db import GenealogyDB
from timetravel.ingest import ingest_gedcom
from timetravel.models import Dataset, Direction, RenderMode
from timetravel.output.frame_renderer import save_frame
from timetravel.playback.recording import FrameCaptureBackend, RecordingSession
from timetravel.resolvers.graph_walker import PersonGraphWalker
from timetravel.session import MapSession


def _add_query_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("root", help="Xref of the root individual (e.g. I1)")
    p.add_argument(
        "-d", "--direction", choices=[d.value for d in Direction], default=Direction.UP.value,
        help="UP for ancestors, DOWN for descendants",
    )
    p.add_argument("-g", "--generations", type=int, default=None, help="Generations to walk (3-100)")


def _add_view_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--mode", choices=[m.value for m in RenderMode], default=RenderMode.SPREAD.value)
    p.add_argument("--parents", action="store_true", help="Draw parent links")
    p.add_argument("--no-autozoom", action="store_true", help="Keep the initial view")


def _walk(args, db: GenealogyDB, config) -> Dataset | None:
    result = PersonGraphWalker(db, config).walk(args.root, args.direction, args.generations)
    if not result.ok:
        print(f"Error: {result.message}")
        return None
    return result.dataset


def _session(args, dataset: Dataset, config) -> MapSession:
    session = MapSession(dataset, config, mode=args.mode)
    session.show_parents = args.parents
    session.autozoom = not args.no_autozoom
    session.start()
    return session


def main() -> None:
    parser = argparse.ArgumentParser(description="Time Travel Map")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # ingest command
    ingest_parser = sub.add_parser("ingest", help="Load a GEDCOM file into the record store")
    ingest_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    ingest_parser.add_argument("gedcom_path", help="Path to the .ged file")

    # place command
    place_parser = sub.add_parser("place", help="Add or update a gazetteer place")
    place_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    place_parser.add_argument("name", help="Place name exactly as it appears in PLAC")
    place_parser.add_argument("lat", type=float)
    place_parser.add_argument("lng", type=float)

    # data command
    data_parser = sub.add_parser("data", help="Print the map dataset as JSON")
    data_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    _add_query_args(data_parser)
    data_parser.add_argument("-o", "--output", help="Write JSON to this file instead of stdout")

    # frame command
    frame_parser = sub.add_parser("frame", help="Resolve positions for one year")
    frame_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    _add_query_args(frame_parser)
    _add_view_args(frame_parser)
    frame_parser.add_argument("year", type=int)
    frame_parser.add_argument("--png", help="Render the frame to this image file")

    # histogram command
    hist_parser = sub.add_parser("histogram", help="Show people alive per year")
    hist_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    _add_query_args(hist_parser)
    hist_parser.add_argument("--step", type=int, default=10, help="Print every Nth year")

    # play command
    play_parser = sub.add_parser("play", help="Play the map year by year in the terminal")
    play_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    _add_query_args(play_parser)
    _add_view_args(play_parser)
    play_parser.add_argument("--speed", type=int, default=None, help="Speed multiplier")
    play_parser.add_argument("--reverse", action="store_true", help="Play against the default direction")

    # record command
    record_parser = sub.add_parser("record", help="Record a playback run to an animated GIF")
    record_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    _add_query_args(record_parser)
    _add_view_args(record_parser)
    record_parser.add_argument("--speed", type=int, default=None, help="Speed multiplier")
    record_parser.add_argument("--name", default=None, help="Name used in the output filename")
    record_parser.add_argument("--output-dir", default=None, help="Directory for the GIF")

    # stats command
    stats_parser = sub.add_parser("stats", help="Show record store stats")
    stats_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    db = GenealogyDB(config)
    db.init_db()

    try:
        if args.command == "ingest":
            path = Path(args.gedcom_path)
            if not path.is_file():
                print(f"File not found: {path}")
                return
            result = ingest_gedcom(path, db, config)
            print(result)

        elif args.command == "place":
            db.upsert_place(args.name, args.lat, args.lng)
            print(f"{args.name}: {args.lat}, {args.lng}")

        elif args.command == "data":
            result = PersonGraphWalker(db, config).walk(args.root, args.direction, args.generations)
            payload = json.dumps(result.to_json_dict(), indent=2)
            if args.output:
                Path(args.output).write_text(payload)
                print(f"Wrote {args.output}")
            else:
                print(payload)

        elif args.command == "frame":
            dataset = _walk(args, db, config)
            if dataset is None:
                return
            session = _session(args, dataset, config)
            frame = session.set_year(args.year)
            if args.png:
                path = save_frame(session.render(), Path(args.png))
                print(f"Output: {path}")
            else:
                print(json.dumps(frame.model_dump(mode="json"), indent=2))

        elif args.command == "histogram":
            dataset = _walk(args, db, config)
            if dataset is None:
                return
            session = MapSession(dataset, config)
            hist = session.histogram
            width = 50
            for year, count in hist.series()[::max(1, args.step)]:
                bar = "#" * round(count / hist.max_count * width) if hist.max_count else ""
                print(f"  {year:>5} {count:>5} {bar}")
            print(f"\nPeak: {hist.max_count} alive")

        elif args.command == "play":
            dataset = _walk(args, db, config)
            if dataset is None:
                return
            asyncio.run(_play(args, dataset, config))

        elif args.command == "record":
            dataset = _walk(args, db, config)
            if dataset is None:
                return
            outcome = asyncio.run(_record(args, dataset, config))
            print(outcome)

        elif args.command == "stats":
            individuals = db.count_individuals()
            if not individuals:
                print("No individuals ingested yet.")
                return
            print(
                f"  {individuals} individuals, {db.count_families()} families, "
                f"{db.count_places()} places"
            )

        else:
            parser.print_help()
    finally:
        db.close()


async def _play(args, dataset: Dataset, config) -> None:
    session = _session(args, dataset, config)
    if args.speed:
        session.set_speed(args.speed)

    def show(frame) -> None:
        count = session.histogram.count(frame.year)
        print(f"  {frame.year}: {len(frame.placements)} on map, {count} alive (zoom {session.view.zoom})")

    session.on_frame(show)
    direction = session.initial_direction * (-1 if args.reverse else 1)
    try:
        session.play(direction)
        await session.scheduler.wait_idle()
    finally:
        session.close()


async def _record(args, dataset: Dataset, config):
    session = _session(args, dataset, config)
    if args.speed:
        session.set_speed(args.speed)
    recorder = RecordingSession(
        session,
        FrameCaptureBackend(),
        name=args.name or args.root,
        output_dir=Path(args.output_dir) if args.output_dir else None,
    )
    try:
        return await recorder.record()
    finally:
        session.close()


if __name__ == "__main__":
    main()
