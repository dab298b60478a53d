#!/usr/bin/env python3
"""
viewing_backend/cli.py - Study administration from the command line

Usage:
    viewing-admin create-participant P001 switching
    viewing-admin stats
    viewing-admin stats --participant P001
    viewing-admin export events --output events.json
    viewing-admin serve

Exit Codes:
    0 = success
    1 = rejected (duplicate id, unknown participant, bad input)
"""
import argparse
import json
import sys

from .auth import issue_token
from .config import settings
from .database import SessionLocal, init_db
from .services import EXPORT_KINDS, Aggregator, ParticipantService, ViewingError, export_rows


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="viewing-admin",
        description="Administration for the viewing study backend"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    create_parser = subparsers.add_parser("create-participant", help="Register a participant")
    create_parser.add_argument("participant_id", help="Externally assigned id, e.g. P001")
    create_parser.add_argument("condition", choices=settings.CONDITIONS, help="Study condition")

    stats_parser = subparsers.add_parser("stats", help="Print study statistics")
    stats_parser.add_argument("--participant", "-p", help="Scope to one participant")

    export_parser = subparsers.add_parser("export", help="Export flat rows as JSON")
    export_parser.add_argument("kind", choices=EXPORT_KINDS)
    export_parser.add_argument(
        "--output", "-o",
        help="File to write (stdout if omitted)"
    )

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default=settings.API_HOST)
    serve_parser.add_argument("--port", type=int, default=settings.API_PORT)

    args = parser.parse_args(argv)

    if args.command == "serve":
        return run_serve(args)

    init_db()
    db = SessionLocal()
    try:
        if args.command == "create-participant":
            return run_create_participant(db, args)
        if args.command == "stats":
            return run_stats(db, args)
        return run_export(db, args)
    except ViewingError as e:
        db.rollback()
        print(f"Error: {e.code}: {e.message}", file=sys.stderr)
        return 1
    finally:
        db.close()


def run_create_participant(db, args) -> int:
    participant = ParticipantService(db).create_participant(args.participant_id, args.condition)
    db.commit()
    print(f"Created {participant.participant_id} ({participant.condition})")
    print(f"Token: {issue_token(participant.participant_id)}")
    return 0


def run_stats(db, args) -> int:
    aggregator = Aggregator(db)
    if args.participant:
        stats = aggregator.participant_stats(args.participant)
    else:
        stats = aggregator.study_stats()
    print(json.dumps(stats, indent=2))
    return 0


def run_export(db, args) -> int:
    rows = export_rows(db, args.kind)

    if args.output:
        with open(args.output, "w") as f:
            json.dump(rows, f, indent=2)
        print(f"{len(rows)} {args.kind} rows written to: {args.output}")
    else:
        print(json.dumps(rows, indent=2))
    return 0


def run_serve(args) -> int:
    import uvicorn

    uvicorn.run("viewing_backend.main:app", host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
