"""
Candidate provider backed by the discovery API (POST /discovery).

Ranking and eligibility are entirely server-side; this adapter only maps
a CandidateQuery onto the wire format and the response back onto
Candidate objects.
"""

import asyncio
from typing import Any, Dict, List, Optional

from ..config import ApiConfig
from ..errors import CandidateFetchFailed
from ..logger import StructuredLogger, get_logger
from ..models import Candidate, CandidatePage, CandidateQuery
from ..retry import CircuitBreaker, CircuitOpenError
from .common import ApiRequestError, request_json, unwrap_envelope

DISCOVERY_PATH = "/discovery"


def build_payload(query: CandidateQuery) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "lat": query.origin.lat,
        "lng": query.origin.lng,
        "radius": query.radius_km,
        "sortBy": query.sort_by,
        "sortOrder": query.sort_order,
        "limit": query.limit,
    }
    if query.levels:
        payload["level"] = list(query.levels)
    if query.genders:
        payload["gender"] = list(query.genders)
    if query.exclude_id:
        payload["teamId"] = query.exclude_id
    if query.exclude_ids:
        payload["exclude"] = list(query.exclude_ids)
    return payload


def parse_page(data: Any, logger: Optional[StructuredLogger] = None) -> CandidatePage:
    """Map a discovery response body onto a CandidatePage, skipping malformed teams."""
    logger = logger or get_logger()
    if not isinstance(data, dict):
        raise ApiRequestError("Discovery response has no data")

    candidates: List[Candidate] = []
    for item in data.get("teams") or []:
        try:
            candidates.append(Candidate.from_payload(item))
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Skipping malformed candidate", error=str(e))

    total = data.get("total")
    return CandidatePage(candidates=candidates, total=int(total) if total is not None else None)


class DiscoveryClient:
    def __init__(
        self,
        config: Optional[ApiConfig] = None,
        *,
        breaker: Optional[CircuitBreaker] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.config = config or ApiConfig.from_env()
        self._logger = logger or get_logger()
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=3,
            recovery_timeout=30.0,
            expected_exception=ApiRequestError,
            service="Discovery",
            logger=self._logger,
        )

    def fetch_page(self, query: CandidateQuery) -> CandidatePage:
        """Blocking fetch. Raises ApiRequestError or CircuitOpenError."""
        body = self.breaker.call(
            request_json,
            "POST",
            DISCOVERY_PATH,
            config=self.config,
            service="Discovery",
            payload=build_payload(query),
            retry=True,
            logger=self._logger,
        )
        return parse_page(unwrap_envelope(body, "Discovery"), self._logger)

    async def fetch_candidates(self, query: CandidateQuery) -> CandidatePage:
        try:
            return await asyncio.to_thread(self.fetch_page, query)
        except (ApiRequestError, CircuitOpenError) as e:
            raise CandidateFetchFailed(str(e)) from e
