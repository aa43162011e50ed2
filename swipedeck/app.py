import argparse
import asyncio
import os
from pathlib import Path
from typing import Optional

from . import __version__
from .clients import DiscoveryClient, IpGeolocator, SwipeClient
from .config import ApiConfig, EngineConfig
from .env import load_env
from .errors import CandidateFetchFailed, SwipeRejected
from .journal import HISTORY_FILTERS, SwipeJournal
from .logger import StructuredLogger, get_logger
from .memory import InMemoryCandidateProvider, InMemorySwipeSubmitter, load_candidates
from .models import Candidate, Coordinate, LocationSource, SearchFilters, SwipeDirection
from .session import DiscoverySession

SESSION_HELP = "Commands: [l]ike, [p]ass, [d]ismiss match, [r]efresh, [q]uit"


def _split(value: Optional[str]) -> tuple:
    return tuple(v.strip() for v in value.split(",") if v.strip()) if value else ()


def build_filters(args: argparse.Namespace) -> SearchFilters:
    return SearchFilters(
        radius_km=args.radius,
        levels=_split(args.levels),
        genders=_split(args.genders),
        sort_by=args.sort_by,
        sort_order=args.sort_order,
        exclude_id=args.swiper,
    )


def location_source_from_args(args: argparse.Namespace) -> LocationSource:
    if args.lat is not None and args.lng is not None:
        return LocationSource.anchored(Coordinate(args.lat, args.lng))
    if args.default_location:
        return LocationSource.default()
    return LocationSource.current()


def build_logger(args: argparse.Namespace) -> StructuredLogger:
    level = args.log_level or os.getenv("SWIPEDECK_LOG_LEVEL", "WARNING")
    log_dir = Path(os.getenv("SWIPEDECK_LOG_DIR", "logs"))
    return get_logger(level=level, log_dir=log_dir)


def build_session(args: argparse.Namespace, logger: StructuredLogger, journal=None) -> DiscoverySession:
    if args.offline:
        candidates = load_candidates(Path(args.offline))
        provider = InMemoryCandidateProvider(candidates)
        # offline fixtures mark teams that already liked us with "likesYou"
        submitter = InMemorySwipeSubmitter(liked_by=[c.id for c in candidates if c.attributes.get("likesYou")])
        locator = None
    else:
        api_config = ApiConfig.from_env()
        provider = DiscoveryClient(api_config, logger=logger)
        submitter = SwipeClient(api_config, logger=logger)
        locator = IpGeolocator(api_config, logger=logger)

    return DiscoverySession(
        args.swiper,
        provider,
        submitter,
        device_locator=locator,
        filters=build_filters(args),
        location_source=location_source_from_args(args),
        config=EngineConfig.from_env(),
        logger=logger,
        journal=journal,
    )


def format_candidate(candidate: Candidate) -> str:
    extras = [str(candidate.attributes[k]) for k in ("level", "gender") if candidate.attributes.get(k)]
    suffix = f" [{', '.join(extras)}]" if extras else ""
    return f"{candidate.name} ({candidate.id}) - {candidate.distance_km:.1f} km{suffix}"


async def run_discover(args: argparse.Namespace) -> int:
    logger = build_logger(args)
    session = build_session(args, logger)
    try:
        await session.start()
    except CandidateFetchFailed as e:
        print(f"Could not load candidates: {e}")
        return 1

    origin = session.filters.origin
    print(f"Origin: {origin.lat:.4f}, {origin.lng:.4f} ({session.location_source.kind.value})")
    of_total = f" of {session.deck.total_available}" if session.deck.total_available else ""
    print(f"Found {len(session.deck)}{of_total} candidates:\n")
    for i, candidate in enumerate(session.deck.candidates, 1):
        print(f"{i:>3}. {format_candidate(candidate)}")
    return 0


def render(session: DiscoverySession) -> None:
    event = session.match_event
    if event is not None:
        who = event.candidate.name if event.candidate else "a team"
        print(f"\n*** It's a match with {who}! (ref: {event.match_ref}) - press d to dismiss ***")

    error = session.dismiss_error()
    if error is not None:
        print(f"  ! {error}")

    candidate = session.current_candidate()
    if candidate is None:
        print("\nNo more candidates. Press r to refresh.")
    else:
        print(f"\n{format_candidate(candidate)}")
    print(f"  pending swipes: {session.pending_swipe_count}/{session.config.max_pending}")


async def run_session(args: argparse.Namespace) -> int:
    logger = build_logger(args)
    journal = SwipeJournal(Path(args.db))
    session = build_session(args, logger, journal)
    try:
        await session.start()
    except CandidateFetchFailed as e:
        print(f"Could not load candidates: {e}")
        journal.close()
        return 1

    print(SESSION_HELP)
    while True:
        render(session)
        try:
            command = (await asyncio.to_thread(input, "> ")).strip().lower()
        except EOFError:
            break

        try:
            if command in ("l", "like"):
                session.swipe(SwipeDirection.LIKE)
            elif command in ("p", "pass"):
                session.swipe(SwipeDirection.PASS)
            elif command in ("d", "dismiss"):
                session.dismiss_match()
            elif command in ("r", "refresh"):
                await session.refresh_deck()
            elif command in ("q", "quit", "exit"):
                break
            else:
                print(SESSION_HELP)
        except SwipeRejected as e:
            print(f"  {e}")
        except CandidateFetchFailed as e:
            print(f"  Could not load candidates: {e}")

    print("Waiting for pending swipes...")
    await session.drain()
    journal.close()
    logger.log_metrics_summary()
    return 0


def cmd_discover(args: argparse.Namespace) -> None:
    code = asyncio.run(run_discover(args))
    if code:
        raise SystemExit(code)


def cmd_session(args: argparse.Namespace) -> None:
    code = asyncio.run(run_session(args))
    if code:
        raise SystemExit(code)


def cmd_history(args: argparse.Namespace) -> None:
    db_path = Path(args.db)
    if not db_path.exists():
        print(f"Journal not found: {db_path}")
        return
    rows = SwipeJournal(db_path).history(args.swiper, action=args.action, limit=args.limit)
    if not rows:
        print("No swipes recorded.")
        return
    for row in rows:
        match = f" match={row['match_ref']}" if row["match_ref"] else ""
        print(f"{row['created_at']:%Y-%m-%d %H:%M:%S}  {row['action']:<4}  {row['candidate_id']}  {row['status']}{match}")


def cmd_stats(args: argparse.Namespace) -> None:
    db_path = Path(args.db)
    if not db_path.exists():
        print(f"Journal not found: {db_path}")
        return
    stats = SwipeJournal(db_path).stats(args.swiper)
    print(f"Swipes: {stats['total']} ({stats['likes']} likes, {stats['passes']} passes)")
    print(f"Matches: {stats['matches']} ({stats['match_rate'] * 100:.1f}% of likes)")
    print(f"Like rate: {stats['like_rate'] * 100:.1f}%")
    print(f"Failed submissions: {stats['failures']}")


def _add_search_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--swiper", required=True, help="Id of the team doing the swiping")
    p.add_argument("--lat", type=float, help="Anchor latitude (use with --lng)")
    p.add_argument("--lng", type=float, help="Anchor longitude (use with --lat)")
    p.add_argument("--default-location", action="store_true", help="Search around the configured home region")
    p.add_argument("--radius", type=float, default=10.0, help="Search radius in km (default 10)")
    p.add_argument("--levels", help="Comma-separated skill levels")
    p.add_argument("--genders", help="Comma-separated genders")
    p.add_argument("--sort-by", default="distance", choices=["distance", "compatibility", "quality", "activity"])
    p.add_argument("--sort-order", default="ASC", choices=["ASC", "DESC"])
    p.add_argument("--offline", help="JSON file of teams to use instead of the API")
    p.add_argument("--log-level", help="Log level (default: SWIPEDECK_LOG_LEVEL or WARNING)")


def main():
    # Load .env if present (SWIPEDECK_API_BASE_URL, SWIPEDECK_API_TOKEN, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="swipedeck", description="Swipe-based team discovery CLI")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    dsc = subparsers.add_parser("discover", help="Resolve an origin and print one page of candidates")
    _add_search_args(dsc)
    dsc.set_defaults(func=cmd_discover)

    ses = subparsers.add_parser("session", help="Interactive swipe session")
    _add_search_args(ses)
    ses.add_argument("--db", default="data/swipes.db", help="Swipe journal database (default: data/swipes.db)")
    ses.set_defaults(func=cmd_session)

    his = subparsers.add_parser("history", help="List recorded swipes")
    his.add_argument("--swiper", required=True, help="Id of the team doing the swiping")
    his.add_argument("--action", default="all", choices=list(HISTORY_FILTERS))
    his.add_argument("--limit", type=int, default=20, help="Maximum rows (default 20)")
    his.add_argument("--db", default="data/swipes.db", help="Swipe journal database (default: data/swipes.db)")
    his.set_defaults(func=cmd_history)

    sts = subparsers.add_parser("stats", help="Summarize recorded swipes")
    sts.add_argument("--swiper", required=True, help="Id of the team doing the swiping")
    sts.add_argument("--db", default="data/swipes.db", help="Swipe journal database (default: data/swipes.db)")
    sts.set_defaults(func=cmd_stats)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
