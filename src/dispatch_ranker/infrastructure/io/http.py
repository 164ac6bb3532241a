"""HTTP client and provider adapters.

Usage example:
    import requests

    from dispatch_ranker.infrastructure.io.http import (
        JsonHttpClient,
        MapboxDrivingDistanceProvider,
    )
    from dispatch_ranker.infrastructure.resilience import CircuitBreaker, RateLimiter

    client = JsonHttpClient(
        session=requests.Session(),
        provider_name="Mapbox",
        rate_limiter=RateLimiter(),
        circuit_breaker=CircuitBreaker(),
    )
    distances = MapboxDrivingDistanceProvider(client=client, access_token="pk.test")
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import override
from urllib.parse import quote

import requests

from ...application.context import SchedulingContext, build_prompt_messages
from ...exceptions import (
    AuthenticationError,
    QuotaExhaustedError,
    RateLimitError,
    UpstreamServiceError,
)
from ...observability import get_logger
from ...protocols import (
    BoundaryProvider,
    CircuitBreaker,
    DrivingDistanceProvider,
    Geocoder,
    HttpClient,
    RateLimiter,
    ReasoningService,
    RetryPolicy,
)
from ...types import Coordinate, ReasoningOutcome, Ring, RoutedDistance
from ..resilience import CircuitBreaker as CircuitBreakerImpl
from ..resilience import RateLimiter as RateLimiterImpl
from ..resilience import RetryPolicy as RetryPolicyImpl
from .validation import (
    IncomingDataError,
    parse_census_geometry,
    parse_chat_completion_content,
    parse_directions_response,
    parse_geocode_response,
    parse_reasoning_content,
    validate_json_as,
)

logger = get_logger("dispatch_ranker.infrastructure.http")

MAPBOX_DIRECTIONS_URL = "https://api.mapbox.com/directions/v5/mapbox/driving"
MAPBOX_GEOCODE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"


def parse_retry_after(headers: Mapping[str, str] | None) -> int | None:
    """Parse Retry-After header into seconds, if available."""
    if not headers:
        return None
    value = headers.get("Retry-After")
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        dt = parsedate_to_datetime(value)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        delta = (dt - datetime.now(UTC)).total_seconds()
        return max(0, int(delta))
    except (AttributeError, OverflowError, TypeError, ValueError):
        return None


def _response_details(response: requests.Response) -> str:
    """Return a compact status/body summary for error reporting."""
    try:
        body = response.text
    except (UnicodeDecodeError, ValueError, requests.RequestException):
        body = "<unreadable>"
    body = " ".join(body.split())
    if len(body) > 300:
        body = body[:300] + "..."
    return f"status={response.status_code}, body={body}"


class JsonHttpClient(HttpClient):
    """JSON client with rate limiting, retries and a circuit breaker.

    Status handling:
    - 401/403 raise AuthenticationError immediately (fatal)
    - 402 raises QuotaExhaustedError immediately
    - 429 and 5xx retry with backoff, then raise RateLimitError or UpstreamServiceError
    - Network errors retry, then raise UpstreamServiceError
    """

    def __init__(
        self,
        *,
        session: requests.Session,
        provider_name: str,
        rate_limiter: RateLimiter | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float = 30.0,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self.session = session
        self.provider_name = provider_name
        self.rate_limiter = rate_limiter or RateLimiterImpl()
        self.circuit_breaker = circuit_breaker or CircuitBreakerImpl()
        self.retry_policy = retry_policy or RetryPolicyImpl()
        self.timeout_seconds = timeout_seconds
        self.headers = dict(headers or {})

    @override
    def get_json(
        self, url: str, *, params: Mapping[str, str] | None = None
    ) -> dict[str, object]:
        return self._request("GET", url, params=params)

    @override
    def post_json(self, url: str, payload: Mapping[str, object]) -> dict[str, object]:
        return self._request("POST", url, payload=payload)

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        payload: Mapping[str, object] | None = None,
    ) -> dict[str, object]:
        attempt = 0
        while True:
            # Check circuit breaker BEFORE making any request
            self.circuit_breaker.check()
            self.rate_limiter.wait_if_needed()

            try:
                r = self.session.request(
                    method,
                    url,
                    params=dict(params) if params else None,
                    json=dict(payload) if payload is not None else None,
                    headers=self.headers or None,
                    timeout=self.timeout_seconds,
                )
            except self.retry_policy.retry_exceptions as exc:
                if attempt < self.retry_policy.max_retries:
                    time.sleep(self.retry_policy.compute_backoff(attempt))
                    attempt += 1
                    continue
                self.circuit_breaker.record_failure()
                raise UpstreamServiceError(self.provider_name, str(exc)) from exc
            except requests.RequestException as exc:
                self.circuit_breaker.record_failure()
                raise UpstreamServiceError(self.provider_name, str(exc)) from exc

            if r.status_code in (401, 403):
                self.circuit_breaker.record_failure()
                raise AuthenticationError.for_status(
                    self.provider_name, r.status_code, _response_details(r)
                )

            if r.status_code == 402:
                # Quota responses do not count toward the circuit breaker.
                raise QuotaExhaustedError(self.provider_name)

            if r.status_code in self.retry_policy.retry_statuses:
                retry_after = parse_retry_after(getattr(r, "headers", None))
                if attempt < self.retry_policy.max_retries:
                    time.sleep(self.retry_policy.compute_backoff(attempt, retry_after))
                    attempt += 1
                    continue
                self.circuit_breaker.record_failure()
                if r.status_code == 429:
                    logger.warning(
                        "%s rate limit response: %s", self.provider_name, _response_details(r)
                    )
                    raise RateLimitError(retry_after or 60)
                raise UpstreamServiceError(self.provider_name, _response_details(r))

            if r.status_code >= 400:
                self.circuit_breaker.record_failure()
                raise UpstreamServiceError(self.provider_name, _response_details(r))

            try:
                data = validate_json_as(dict[str, object], r.text)
            except IncomingDataError as exc:
                self.circuit_breaker.record_failure()
                raise UpstreamServiceError(
                    self.provider_name, "response body is not a JSON object"
                ) from exc

            self.circuit_breaker.record_success()
            return data


class MapboxDrivingDistanceProvider(DrivingDistanceProvider):
    def __init__(self, *, client: HttpClient, access_token: str) -> None:
        self.client = client
        self.access_token = access_token

    @override
    def driving_distance(
        self, origin: Coordinate, destination: Coordinate
    ) -> RoutedDistance | None:
        url = (
            f"{MAPBOX_DIRECTIONS_URL}/{origin.longitude},{origin.latitude};"
            f"{destination.longitude},{destination.latitude}"
        )
        payload = self.client.get_json(
            url, params={"access_token": self.access_token, "overview": "false"}
        )
        try:
            return parse_directions_response(payload)
        except IncomingDataError:
            logger.warning("Unexpected directions payload for %s", url)
            return None


class MapboxGeocoder(Geocoder):
    def __init__(self, *, client: HttpClient, access_token: str) -> None:
        self.client = client
        self.access_token = access_token

    @override
    def geocode(self, address: str) -> Coordinate | None:
        text = address.strip()
        if not text:
            return None
        url = f"{MAPBOX_GEOCODE_URL}/{quote(text, safe='')}.json"
        payload = self.client.get_json(
            url, params={"access_token": self.access_token, "limit": "1"}
        )
        try:
            return parse_geocode_response(payload)
        except IncomingDataError:
            logger.warning("Unexpected geocoding payload for %r", text)
            return None


class CensusBoundaryProvider(BoundaryProvider):
    """ZIP Code Tabulation Area boundaries from the Census Reporter API."""

    def __init__(self, *, client: HttpClient, api_base: str) -> None:
        self.client = client
        self.api_base = api_base.rstrip("/")

    @override
    def boundary_for_postal_code(self, postal_code: str) -> tuple[Ring, ...] | None:
        code = postal_code.strip()
        if not code:
            return None
        payload = self.client.get_json(f"{self.api_base}/86000US{code}", params={"geom": "true"})
        try:
            rings = parse_census_geometry(payload)
        except IncomingDataError:
            rings = None
        if rings is None:
            logger.info("No geometry returned for postal code %s", code)
        return rings


class ChatCompletionsReasoningService(ReasoningService):
    """Reasoning over an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        *,
        client: HttpClient,
        api_url: str,
        model: str,
        temperature: float = 0.3,
    ) -> None:
        self.client = client
        self.api_url = api_url
        self.model = model
        self.temperature = temperature

    @override
    def rank(self, context: SchedulingContext) -> ReasoningOutcome:
        payload = self.client.post_json(
            self.api_url,
            {
                "model": self.model,
                "messages": build_prompt_messages(context),
                "temperature": self.temperature,
            },
        )
        try:
            content = parse_chat_completion_content(payload)
        except IncomingDataError:
            content = ""
        return parse_reasoning_content(content)


def build_mapbox_client(
    *,
    timeout_seconds: float,
    circuit_breaker_threshold: int,
    circuit_breaker_timeout_seconds: float,
) -> JsonHttpClient:
    """Client for routed lookups: no retries, so one slow call cannot stall ranking."""
    return JsonHttpClient(
        session=requests.Session(),
        provider_name="Mapbox",
        rate_limiter=RateLimiterImpl(max_rpm=0, min_delay_seconds=0.0),
        circuit_breaker=CircuitBreakerImpl(
            threshold=circuit_breaker_threshold,
            recovery_timeout_seconds=circuit_breaker_timeout_seconds,
        ),
        retry_policy=RetryPolicyImpl(max_retries=0),
        timeout_seconds=timeout_seconds,
    )


def build_ingestion_client(
    *,
    provider_name: str,
    min_delay_seconds: float,
    max_retries: int,
    backoff_factor: float,
    timeout_seconds: float = 30.0,
) -> JsonHttpClient:
    return JsonHttpClient(
        session=requests.Session(),
        provider_name=provider_name,
        rate_limiter=RateLimiterImpl(max_rpm=0, min_delay_seconds=min_delay_seconds),
        retry_policy=RetryPolicyImpl(max_retries=max_retries, backoff_factor=backoff_factor),
        timeout_seconds=timeout_seconds,
    )


def build_reasoning_client(*, api_key: str, timeout_seconds: float) -> JsonHttpClient:
    """Client for the reasoning gateway. 429 and 402 surface immediately to the caller."""
    return JsonHttpClient(
        session=requests.Session(),
        provider_name="Reasoning service",
        rate_limiter=RateLimiterImpl(max_rpm=0, min_delay_seconds=0.0),
        retry_policy=RetryPolicyImpl(max_retries=0),
        timeout_seconds=timeout_seconds,
        headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
    )
