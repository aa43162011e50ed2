"""
Swipe submitter backed by the swipes API (POST /swipes).

Fire once: a swipe is never retried here, a failure is reported to the
worker queue which moves on to the next intent.
"""

import asyncio
from typing import Any, Dict, Optional

from ..config import ApiConfig
from ..errors import SwipeSubmitFailed
from ..logger import StructuredLogger, get_logger
from ..models import SwipeOutcome, SwipeRequest
from .common import ApiRequestError, request_json, unwrap_envelope

SWIPES_PATH = "/swipes"


def build_payload(request: SwipeRequest) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "swiperTeamId": request.swiper_id,
        "targetTeamId": request.target_id,
        "action": request.action.value,
    }
    if request.metadata:
        payload["swipeMetadata"] = dict(request.metadata)
    return payload


def parse_outcome(request: SwipeRequest, data: Any) -> SwipeOutcome:
    if not isinstance(data, dict):
        raise ApiRequestError("Swipe response has no data")
    new_match = data.get("newMatch") or {}
    match_ref = new_match.get("id") if isinstance(new_match, dict) else None
    return SwipeOutcome(
        candidate_id=request.target_id,
        is_match=bool(data.get("isMatch")),
        match_ref=str(match_ref) if match_ref is not None else None,
    )


class SwipeClient:
    def __init__(self, config: Optional[ApiConfig] = None, *, logger: Optional[StructuredLogger] = None):
        self.config = config or ApiConfig.from_env()
        self._logger = logger or get_logger()

    def submit(self, request: SwipeRequest) -> SwipeOutcome:
        """Blocking submit. Raises ApiRequestError."""
        body = request_json(
            "POST",
            SWIPES_PATH,
            config=self.config,
            service="Swipe",
            payload=build_payload(request),
            logger=self._logger,
        )
        return parse_outcome(request, unwrap_envelope(body, "Swipe"))

    async def submit_swipe(self, request: SwipeRequest) -> SwipeOutcome:
        try:
            return await asyncio.to_thread(self.submit, request)
        except ApiRequestError as e:
            raise SwipeSubmitFailed(str(e), candidate_id=request.target_id) from e
