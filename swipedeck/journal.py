"""
Swipe journal: an audit trail of resolved swipes, with history and stats.

Write-only from the engine's point of view; the session never reads it back.
One engine per journal; `record` is safe to call from a worker thread.
"""

from pathlib import Path
from typing import Dict, List, Optional, Union

from .database import SwipeRecord, get_session, init_database
from .models import SwipeDirection

STATUSES = ("accepted", "matched", "failed")
HISTORY_FILTERS = ("all", "like", "pass")


class SwipeJournal:
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._engine = init_database(self.db_path)

    def close(self) -> None:
        self._engine.dispose()

    def record(
        self,
        swiper_id: str,
        candidate_id: str,
        action: Union[SwipeDirection, str],
        *,
        status: str,
        match_ref: Optional[str] = None,
    ) -> None:
        if status not in STATUSES:
            raise ValueError(f"Unknown swipe status: {status}")
        session = get_session(self._engine)
        try:
            session.add(
                SwipeRecord(
                    swiper_id=swiper_id,
                    candidate_id=candidate_id,
                    action=SwipeDirection(action).value,
                    status=status,
                    match_ref=match_ref,
                )
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def history(self, swiper_id: str, action: str = "all", limit: Optional[int] = None) -> List[Dict]:
        """Most recent first. `action` is one of all | like | pass."""
        if action not in HISTORY_FILTERS:
            raise ValueError(f"action must be one of {', '.join(HISTORY_FILTERS)}")

        session = get_session(self._engine)
        try:
            query = session.query(SwipeRecord).filter_by(swiper_id=swiper_id)
            if action != "all":
                query = query.filter_by(action=action)
            query = query.order_by(SwipeRecord.created_at.desc(), SwipeRecord.id.desc())
            if limit is not None:
                query = query.limit(limit)
            return [
                {
                    "candidate_id": r.candidate_id,
                    "action": r.action,
                    "status": r.status,
                    "match_ref": r.match_ref,
                    "created_at": r.created_at,
                }
                for r in query.all()
            ]
        finally:
            session.close()

    def stats(self, swiper_id: str) -> Dict[str, float]:
        session = get_session(self._engine)
        try:
            records = session.query(SwipeRecord).filter_by(swiper_id=swiper_id).all()
        finally:
            session.close()

        delivered = [r for r in records if r.status != "failed"]
        likes = sum(1 for r in delivered if r.action == SwipeDirection.LIKE.value)
        passes = sum(1 for r in delivered if r.action == SwipeDirection.PASS.value)
        matches = sum(1 for r in delivered if r.status == "matched")
        failures = len(records) - len(delivered)
        return {
            "total": len(delivered),
            "likes": likes,
            "passes": passes,
            "matches": matches,
            "failures": failures,
            "like_rate": round(likes / len(delivered), 3) if delivered else 0.0,
            "match_rate": round(matches / likes, 3) if likes else 0.0,
        }
