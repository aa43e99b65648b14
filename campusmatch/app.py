import argparse
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List

from . import __version__, config
from .database import init_database
from .engine import MatchingEngine
from .errors import InvalidProfile, MatchingError
from .models import SearchCriteria
from .normalize import normalize_optional, normalize_tags
from .profiles import SqlProfileStore
from .schema import profile_from_document


def _engine(args: argparse.Namespace) -> MatchingEngine:
    return MatchingEngine.from_path(Path(args.db))


def _documents(payload: Any) -> Iterable[Dict[str, Any]]:
    """Accept a list of profile documents or a {uid: document} mapping."""
    if isinstance(payload, dict):
        payload = payload.get("users", payload)
    if isinstance(payload, dict):
        for uid, doc in payload.items():
            yield {"uid": uid, **doc} if isinstance(doc, dict) else doc
        return
    if isinstance(payload, list):
        yield from payload
        return
    raise SystemExit("Profiles file must hold a list of documents or a mapping of uid to document")


def import_profiles(payload: Any, store: SqlProfileStore) -> Dict[str, Any]:
    counts = {"new": 0, "updated": 0, "no-change": 0, "invalid": 0}
    errors: List[str] = []
    for doc in _documents(payload):
        if not isinstance(doc, dict):
            counts["invalid"] += 1
            errors.append(f"not a document: {doc!r}")
            continue
        try:
            profile = profile_from_document(doc)
        except InvalidProfile as e:
            counts["invalid"] += 1
            errors.append(f"{doc.get('uid') or doc.get('user_key') or '?'}: {'; '.join(e.errors)}")
            continue
        outcome = store.upsert_profile(profile)
        counts[outcome["status"]] += 1
    return {**counts, "errors": errors}


def cmd_init_db(args: argparse.Namespace) -> None:
    init_database(Path(args.db))
    print(f"Database ready: {args.db}")


def cmd_import_profiles(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        payload = json.load(f)

    engine = _engine(args)
    outcome = import_profiles(payload, engine.profile_store)
    for err in outcome["errors"]:
        print(f"[invalid] {err}")
    print(
        f"Done. new={outcome['new']} updated={outcome['updated']} "
        f"no-change={outcome['no-change']} invalid={outcome['invalid']}"
    )


def cmd_rank(args: argparse.Namespace) -> None:
    ranked = _engine(args).rank(args.user, limit=args.limit)
    if not ranked:
        print("No candidates.")
        return
    for candidate_key, score in ranked:
        print(f"{score:>3}  {candidate_key}")


def cmd_search(args: argparse.Namespace) -> None:
    criteria = SearchCriteria(
        campus=normalize_optional(args.campus),
        course=normalize_optional(args.course),
        department=normalize_optional(args.department),
        year_of_study=args.year,
        interests=normalize_tags(args.interests.split(",") if args.interests else None),
        study_habits=normalize_tags(args.study_habits.split(",") if args.study_habits else None),
        extracurriculars=normalize_tags(args.extracurriculars.split(",") if args.extracurriculars else None),
    )
    ranked = _engine(args).search(args.user, criteria, limit=args.limit)
    if not ranked:
        print("No candidates.")
        return
    for candidate_key, score in ranked:
        print(f"{score:>3}  {candidate_key}")


def cmd_like(args: argparse.Namespace) -> None:
    result = _engine(args).record_like(args.sender, args.recipient)
    print(f"Status: {result.status}")
    if result.match:
        print(f"Match: {result.match.pair_key} ({result.match.channel})")


def cmd_dislike(args: argparse.Namespace) -> None:
    _engine(args).record_dislike(args.sender, args.recipient)
    print("Status: recorded")


def cmd_crush(args: argparse.Namespace) -> None:
    engine = _engine(args)
    result = engine.send_crush(args.sender, args.recipient)
    print(f"Status: {result.status}")
    if result.match:
        print(f"Match: {result.match.pair_key} ({result.match.channel})")
    print(f"Remaining crushes this week: {engine.remaining_crushes(args.sender)}")


def cmd_remaining(args: argparse.Namespace) -> None:
    engine = _engine(args)
    sent = engine.sent_crushes(args.user)
    print(f"Remaining crushes this week: {engine.remaining_crushes(args.user)}")
    for crush in sent:
        print(f"  {crush.created_at.isoformat(timespec='seconds')}  {crush.status:<8} {crush.id}")


def cmd_matches(args: argparse.Namespace) -> None:
    matches = sorted(_engine(args).matches_for(args.user), key=lambda m: m.created_at)
    if not matches:
        print("No matches yet.")
        return
    print(f"Found {len(matches)} matches for {args.user}:\n")
    for match in matches:
        print(f"With: {match.partner_of(args.user)}")
        print(f"  Channel: {match.channel}")
        print(f"  Since: {match.created_at.isoformat(timespec='seconds')}")
        print()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="campusmatch", description="Campus matching engine CLI")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", default=config.DB_PATH, help=f"Path to SQLite database (default: {config.DB_PATH})")

    subparsers = parser.add_subparsers(dest="command")
    ini = subparsers.add_parser("init-db", help="Create the database tables")
    ini.set_defaults(func=cmd_init_db)

    imp = subparsers.add_parser("import-profiles", help="Validate and upsert profile documents from a JSON file")
    imp.add_argument("--input", required=True, help="JSON list of documents or mapping of uid to document")
    imp.set_defaults(func=cmd_import_profiles)

    rnk = subparsers.add_parser("rank", help="Show the best candidates for a user")
    rnk.add_argument("--user", required=True, help="Requesting user key")
    rnk.add_argument("--limit", type=int, default=config.RANK_LIMIT, help="Number of candidates to show")
    rnk.set_defaults(func=cmd_rank)

    sea = subparsers.add_parser("search", help="Rank candidates matching filters")
    sea.add_argument("--user", required=True, help="Requesting user key")
    sea.add_argument("--campus", help="Exact campus")
    sea.add_argument("--course", help="Exact course")
    sea.add_argument("--department", help="Exact department")
    sea.add_argument("--year", type=int, help="Exact year of study")
    sea.add_argument("--interests", help="Comma-separated; candidate must share one")
    sea.add_argument("--study-habits", help="Comma-separated; candidate must share one")
    sea.add_argument("--extracurriculars", help="Comma-separated; candidate must share one")
    sea.add_argument("--limit", type=int, default=config.RANK_LIMIT, help="Number of candidates to show")
    sea.set_defaults(func=cmd_search)

    for name, func, help_text in (
        ("like", cmd_like, "Like a candidate"),
        ("dislike", cmd_dislike, "Pass on a candidate"),
        ("crush", cmd_crush, "Send an anonymous crush"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--sender", required=True, help="Acting user key")
        sub.add_argument("--recipient", required=True, help="Target user key")
        sub.set_defaults(func=func)

    rem = subparsers.add_parser("remaining", help="Show this week's crushes and remaining allowance")
    rem.add_argument("--user", required=True, help="User key")
    rem.set_defaults(func=cmd_remaining)

    mat = subparsers.add_parser("matches", help="List a user's matches")
    mat.add_argument("--user", required=True, help="User key")
    mat.set_defaults(func=cmd_matches)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        try:
            args.func(args)
        except MatchingError as e:
            raise SystemExit(f"Error [{e.status_code}]: {e}")
        return

    parser.print_help()


if __name__ == "__main__":
    main()
