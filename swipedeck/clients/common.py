"""Shared HTTP plumbing for the API adapters."""

from typing import Any, Dict, Optional

import requests

from ..config import ApiConfig
from ..logger import StructuredLogger, get_logger
from ..retry import RetryError, exponential_backoff, is_retryable_status


class ApiRequestError(Exception):
    """Any failed API call: transport error, HTTP error or error envelope."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TransientApiError(ApiRequestError):
    """HTTP status worth retrying (408, 429, 5xx gateway errors)."""
    pass


def build_headers(config: ApiConfig, authenticated: bool = True) -> Dict[str, str]:
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if authenticated and config.token:
        headers["Authorization"] = f"Bearer {config.token}"
    return headers


def resolve_url(config: ApiConfig, path: str) -> str:
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return f"{config.base_url.rstrip('/')}/{path.lstrip('/')}"


def _send(
    method: str,
    url: str,
    *,
    headers: Dict[str, str],
    timeout: float,
    payload: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
) -> requests.Response:
    resp = requests.request(method, url, json=payload, params=params, headers=headers, timeout=timeout)
    if is_retryable_status(resp.status_code):
        raise TransientApiError(f"{method} {url} returned {resp.status_code}", status=resp.status_code)
    return resp


@exponential_backoff(
    max_retries=2,
    base_delay=0.5,
    retry_on=(requests.exceptions.Timeout, requests.exceptions.ConnectionError, TransientApiError),
)
def _send_with_retry(method: str, url: str, **kwargs) -> requests.Response:
    """Send with automatic retry on transient errors. Only for read-only calls."""
    return _send(method, url, **kwargs)


def request_json(
    method: str,
    path: str,
    *,
    config: ApiConfig,
    service: str,
    payload: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    retry: bool = False,
    authenticated: bool = True,
    logger: Optional[StructuredLogger] = None,
) -> Any:
    """Send a request and return the decoded JSON body.

    Args:
        method: HTTP method
        path: Path relative to config.base_url, or an absolute URL
        service: Name used in log lines and error messages (e.g., 'Discovery')
        retry: Retry transient transport errors with backoff
        authenticated: Send the bearer token from config

    Raises:
        ApiRequestError: On any HTTP error, timeout, request failure or bad JSON
    """
    logger = logger or get_logger()
    url = resolve_url(config, path)
    sender = _send_with_retry if retry else _send
    kwargs = dict(
        headers=build_headers(config, authenticated),
        timeout=config.timeout,
        payload=payload,
        params=params,
    )

    try:
        resp = sender(method, url, **kwargs)
        resp.raise_for_status()
    except RetryError as e:
        cause = e.__cause__
        status = getattr(cause, "status", None)
        logger.warning(f"{service} request failed after retries", url=url, error=str(cause))
        raise ApiRequestError(f"{service} request failed after retries: {cause}", status=status) from e
    except ApiRequestError as e:
        logger.warning(f"{service} request failed", url=url, status=e.status)
        raise
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        logger.error(f"{service} request failed", url=url, status=status)
        raise ApiRequestError(f"{service} request failed ({status}): {url}", status=status) from e
    except requests.exceptions.Timeout as e:
        logger.warning(f"{service} request timed out", url=url)
        raise ApiRequestError(f"{service} request timed out. Try again later.") from e
    except requests.exceptions.RequestException as e:
        logger.error(f"{service} request error", url=url, error=str(e))
        raise ApiRequestError(f"{service} request error: {e}") from e

    try:
        return resp.json()
    except ValueError as e:
        raise ApiRequestError(f"{service} returned invalid JSON", status=resp.status_code) from e


def unwrap_envelope(body: Any, service: str) -> Any:
    """Return `data` from a `{success, data, error}` envelope, raising on `success: false`.

    Bodies without an envelope are returned as they are.
    """
    if not isinstance(body, dict) or "success" not in body:
        return body
    if not body.get("success"):
        error = body.get("error") or {}
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise ApiRequestError(f"{service} error: {message or body.get('message') or 'request failed'}")
    return body.get("data")
