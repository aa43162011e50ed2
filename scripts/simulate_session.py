#!/usr/bin/env python3
"""
Run a scripted swipe session against in-memory collaborators.

Each swipe submission gets a random latency, so later swipes often finish
"faster" than earlier ones on the wire; the printed reconciliation order
shows they are still applied in the order they were made.

Usage:
    python scripts/simulate_session.py --teams scripts/sample_teams.json --swipes 12
"""

import argparse
import asyncio
import random
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from swipedeck.config import EngineConfig
from swipedeck.errors import SwipeRejected
from swipedeck.logger import StructuredLogger
from swipedeck.memory import InMemoryCandidateProvider, InMemorySwipeSubmitter, load_candidates
from swipedeck.models import LocationSource, SearchFilters, SwipeDirection
from swipedeck.session import DiscoverySession


async def simulate(teams_path: Path, swipes: int, max_latency: float, page_limit: int, seed: int) -> None:
    rng = random.Random(seed)
    candidates = load_candidates(teams_path)
    provider = InMemoryCandidateProvider(candidates, latency=0.05)
    submitter = InMemorySwipeSubmitter(
        liked_by=[c.id for c in candidates if c.attributes.get("likesYou")],
        latency=lambda request: rng.uniform(0, max_latency),
    )
    logger = StructuredLogger(name="simulation", level="WARNING", enable_file=False)

    session = DiscoverySession(
        "simulator",
        provider,
        submitter,
        filters=SearchFilters(radius_km=50),
        location_source=LocationSource.default(),
        config=EngineConfig(page_limit=page_limit, min_refetch_interval=0.2),
        logger=logger,
    )

    reconciled = []
    session.reconciler.subscribe(lambda event: print(f"  MATCH {event.candidate.name if event.candidate else event.match_ref}"))
    session.subscribe_outcomes(lambda intent, outcome, error: reconciled.append(intent.candidate_id))

    loaded = await session.start()
    print(f"Loaded {loaded} candidates (total available: {session.deck.total_available or 'unknown'})")

    made = []
    rejected = 0
    while len(made) < swipes:
        if not session.has_more():
            await session.refill.wait_idle()
            if not session.has_more():
                break
        direction = SwipeDirection.LIKE if rng.random() < 0.6 else SwipeDirection.PASS
        try:
            intent = session.swipe(direction)
        except SwipeRejected:
            rejected += 1
            await asyncio.sleep(max_latency / 2)
            continue
        made.append(intent.candidate_id)
        print(f"swipe {direction.value:<4} {intent.candidate_id:<20} pending={session.pending_swipe_count}")
        await asyncio.sleep(rng.uniform(0, max_latency / 4))

    await session.drain()

    print(f"\nSwipes made:       {len(made)} ({rejected} rejected by backpressure)")
    print(f"Submit order:      {[r.target_id for r in submitter.submissions] == made}")
    print(f"Reconcile order:   {reconciled == made}")
    print(f"Max in flight:     {submitter.max_in_flight}")
    print(f"Pending at end:    {session.pending_swipe_count}")
    print(f"Provider calls:    {len(provider.calls)}")
    logger.log_metrics_summary()


def main():
    parser = argparse.ArgumentParser(description="Simulate a swipe session with random latency")
    parser.add_argument("--teams", default=str(Path(__file__).parent / "sample_teams.json"), help="JSON file of teams")
    parser.add_argument("--swipes", type=int, default=10, help="Number of swipes to make")
    parser.add_argument("--max-latency", type=float, default=0.3, help="Max submit latency in seconds")
    parser.add_argument("--page-limit", type=int, default=4, help="Candidates per fetch")
    parser.add_argument("--seed", type=int, default=7, help="Random seed")
    args = parser.parse_args()

    asyncio.run(simulate(Path(args.teams), args.swipes, args.max_latency, args.page_limit, args.seed))


if __name__ == "__main__":
    main()
