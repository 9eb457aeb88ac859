import hashlib
import logging
import random
import time
from typing import Any

import requests
from django.conf import settings

from tracker.exceptions import (
    ApiUnavailable,
    HandleNotFound,
    InvalidParameter,
    NotConfigured,
    PlatformRejected,
    RateLimited,
    TransportError,
)

logger = logging.getLogger(__name__)

GENERIC_RETRY_DELAY = 0.5
RATE_LIMIT_RETRY_DELAY = 1.0


def canonical_query(params: dict[str, Any]) -> str:
    """Sort by key, then by value, and join as ``key=value`` pairs."""
    items = sorted(((str(k), str(v)) for k, v in params.items()), key=lambda kv: (kv[0], kv[1]))
    return '&'.join(f"{key}={value}" for key, value in items)


def sign_request(method: str, params: dict[str, Any], secret: str, nonce: str) -> str:
    payload = f"{nonce}/{method}?{canonical_query(params)}#{secret}"
    return nonce + hashlib.sha512(payload.encode('utf-8')).hexdigest()


def classify_rejection(comment: str, method: str | None = None) -> PlatformRejected:
    lowered = (comment or '').lower()
    if 'not found' in lowered and 'handle' in lowered:
        return HandleNotFound(comment, method=method)
    if 'incorrect' in lowered or 'invalid' in lowered or 'should' in lowered:
        return InvalidParameter(comment, method=method)
    return PlatformRejected(comment, method=method)


def absolute_avatar_url(url: str | None) -> str:
    if not url:
        return ''
    if url.startswith('//'):
        return f"https:{url}"
    if url.startswith('/'):
        return f"https://codeforces.com{url}"
    return url


class CodeforcesClient:
    BASE_URL = "https://codeforces.com/api"

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str | None = None,
        timeout: float = 15,
        max_attempts: int = 3,
        session: requests.Session | None = None,
    ):
        if not api_key or not api_secret:
            raise NotConfigured("CF_API_KEY and CF_API_SECRET must be set.")
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = (base_url or self.BASE_URL).rstrip('/')
        self.timeout = timeout
        self.max_attempts = max(1, int(max_attempts))
        self.session = session or requests.Session()
        self.sleep = time.sleep
        self.clock = time.time
        self._rng = random.SystemRandom()

    @classmethod
    def from_settings(cls) -> "CodeforcesClient":
        return cls(
            api_key=getattr(settings, 'CF_API_KEY', ''),
            api_secret=getattr(settings, 'CF_API_SECRET', ''),
            base_url=getattr(settings, 'CF_API_URL', cls.BASE_URL),
            timeout=getattr(settings, 'CF_API_TIMEOUT_SECONDS', 15),
            max_attempts=getattr(settings, 'CF_API_MAX_ATTEMPTS', 3),
        )

    def make_nonce(self) -> str:
        return f"{self._rng.randrange(10 ** 6):06d}"

    def signed_params(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        full = {**params, 'apiKey': self.api_key, 'time': int(self.clock())}
        full['apiSig'] = sign_request(method, full, self.api_secret, self.make_nonce())
        return full

    def _request_once(self, method: str, params: dict[str, Any]) -> Any:
        url = f"{self.base_url}/{method}"
        try:
            response = self.session.get(url, params=self.signed_params(method, params), timeout=self.timeout)
        except requests.Timeout as exc:
            raise TransportError(f"Timeout calling {method}", method=method) from exc
        except requests.RequestException as exc:
            raise TransportError(f"Network error calling {method}: {exc}", method=method) from exc

        if response.status_code == 429:
            raise RateLimited(f"HTTP 429 from {method}", method=method)

        try:
            data = response.json()
        except ValueError as exc:
            raise TransportError(
                f"Invalid JSON from {method} (HTTP {response.status_code})",
                method=method,
            ) from exc

        status = data.get('status') if isinstance(data, dict) else None
        if status == 'OK':
            return data.get('result')
        if status == 'FAILED':
            comment = data.get('comment') or ''
            if 'limit exceeded' in comment.lower():
                raise RateLimited(comment, method=method)
            raise classify_rejection(comment, method=method)
        raise TransportError(
            f"Unexpected payload from {method} (HTTP {response.status_code})",
            method=method,
        )

    def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        params = dict(params or {})
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._request_once(method, params)
            except TransportError as exc:
                if attempt >= self.max_attempts:
                    logger.error(
                        "Codeforces %s failed after %s attempts: %s",
                        method,
                        self.max_attempts,
                        exc,
                    )
                    raise ApiUnavailable(
                        f"{method} unavailable after {self.max_attempts} attempts: {exc}",
                        method=method,
                    ) from exc
                if isinstance(exc, RateLimited):
                    delay = RATE_LIMIT_RETRY_DELAY * attempt
                else:
                    delay = GENERIC_RETRY_DELAY
                logger.warning(
                    "Codeforces %s attempt %s/%s failed (%s); retrying in %.1fs",
                    method,
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                self.sleep(delay)

    def get_user_info(self, handle: str) -> dict[str, Any]:
        result = self.call('user.info', {'handles': handle})
        if not result:
            raise HandleNotFound(f"handles: User with handle {handle} not found", method='user.info')
        return result[0]

    def get_user_submissions(self, handle: str, count: int = 100, start: int = 1) -> list[dict[str, Any]]:
        return self.call('user.status', {'handle': handle, 'from': start, 'count': count}) or []

    def get_user_rating(self, handle: str) -> list[dict[str, Any]]:
        return self.call('user.rating', {'handle': handle}) or []

    def get_contest_list(self, gym: bool = False) -> list[dict[str, Any]]:
        return self.call('contest.list', {'gym': 'true' if gym else 'false'}) or []

    def get_contest_standings(self, contest_id: int, start: int = 1, count: int = 1) -> dict[str, Any]:
        return self.call(
            'contest.standings',
            {'contestId': contest_id, 'from': start, 'count': count},
        ) or {}
