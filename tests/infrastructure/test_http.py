"""Tests for the JSON HTTP client and provider adapters."""

import json
from datetime import UTC, datetime, timedelta
from email.utils import format_datetime
from unittest.mock import MagicMock, patch

import pytest
import requests

from dispatch_ranker.application.context import build_scheduling_context
from dispatch_ranker.application.technician_ranking import TechnicianDistanceRanker
from dispatch_ranker.config import RankingConfig
from dispatch_ranker.domain.skills import SkillConstraintModel
from dispatch_ranker.exceptions import (
    AuthenticationError,
    CircuitBreakerOpen,
    QuotaExhaustedError,
    RateLimitError,
    UpstreamServiceError,
)
from dispatch_ranker.infrastructure import (
    CensusBoundaryProvider,
    ChatCompletionsReasoningService,
    CircuitBreaker,
    JsonHttpClient,
    MapboxDrivingDistanceProvider,
    MapboxGeocoder,
    RateLimiter,
    RetryPolicy,
)
from dispatch_ranker.infrastructure.io.http import (
    build_ingestion_client,
    build_mapbox_client,
    build_reasoning_client,
    parse_retry_after,
)
from dispatch_ranker.types import Coordinate, NewJobRequest, Parsed, Technician, Unparseable
from tests.fakes import FakeHttpClient, RecordingRateLimiter, ScriptedCircuitBreaker
from tests.support.builders import MONDAY, TARGET, offset_east


def _response(
    status_code: int = 200,
    body: object | None = None,
    *,
    headers: dict[str, str] | None = None,
) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = json.dumps(body if body is not None else {})
    response.headers = headers or {}
    return response


def _make_client(
    session: MagicMock,
    *,
    retries: int = 0,
    rate_limiter: RecordingRateLimiter | None = None,
    circuit_breaker: CircuitBreaker | ScriptedCircuitBreaker | None = None,
) -> JsonHttpClient:
    return JsonHttpClient(
        session=session,
        provider_name="Test provider",
        rate_limiter=rate_limiter or RateLimiter(max_rpm=0, min_delay_seconds=0),
        circuit_breaker=circuit_breaker or CircuitBreaker(threshold=3),
        retry_policy=RetryPolicy(max_retries=retries, backoff_factor=0, jitter_seconds=0),
    )


class TestParseRetryAfter:
    """Tests for Retry-After parsing."""

    def test_numeric_seconds(self) -> None:
        assert parse_retry_after({"Retry-After": "12"}) == 12

    def test_http_date(self) -> None:
        future = datetime.now(UTC) + timedelta(seconds=30)
        value = parse_retry_after({"Retry-After": format_datetime(future)})
        assert value is not None
        assert 0 <= value <= 30

    def test_missing_or_invalid(self) -> None:
        assert parse_retry_after(None) is None
        assert parse_retry_after({}) is None
        assert parse_retry_after({"Retry-After": "not-a-date"}) is None


class TestJsonHttpClient:
    """Tests for status handling in JsonHttpClient."""

    def test_get_passes_params_and_returns_object(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(body={"ok": True})
        client = _make_client(session)

        assert client.get_json("https://example.com/a", params={"q": "1"}) == {"ok": True}

        args, kwargs = session.request.call_args
        assert args == ("GET", "https://example.com/a")
        assert kwargs["params"] == {"q": "1"}
        assert kwargs["json"] is None

    def test_post_sends_json_and_headers(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(body={"ok": True})
        client = JsonHttpClient(
            session=session,
            provider_name="Test provider",
            rate_limiter=RateLimiter(max_rpm=0, min_delay_seconds=0),
            headers={"Authorization": "Bearer k"},
            timeout_seconds=7,
        )

        client.post_json("https://example.com/b", {"model": "m"})

        args, kwargs = session.request.call_args
        assert args[0] == "POST"
        assert kwargs["json"] == {"model": "m"}
        assert kwargs["headers"] == {"Authorization": "Bearer k"}
        assert kwargs["timeout"] == 7

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_errors_are_fatal(self, status: int) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(status)
        client = _make_client(session, retries=3)

        with pytest.raises(AuthenticationError) as exc_info:
            client.get_json("https://example.com")

        assert session.request.call_count == 1
        assert str(status) in str(exc_info.value)

    def test_402_raises_quota_error_without_tripping_breaker(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(402)
        breaker = ScriptedCircuitBreaker()
        client = _make_client(session, circuit_breaker=breaker)

        with pytest.raises(QuotaExhaustedError):
            client.post_json("https://example.com", {})

        assert breaker.events == ["check"]

    def test_429_raises_rate_limit_with_retry_after(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(429, headers={"Retry-After": "17"})
        client = _make_client(session)

        with pytest.raises(RateLimitError) as exc_info:
            client.get_json("https://example.com")

        assert exc_info.value.retry_after == 17

    def test_server_error_retries_then_succeeds(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = [_response(503), _response(body={"ok": True})]
        client = _make_client(session, retries=1)

        with patch("dispatch_ranker.infrastructure.io.http.time.sleep") as sleep:
            assert client.get_json("https://example.com") == {"ok": True}

        assert session.request.call_count == 2
        sleep.assert_called_once()

    def test_server_error_after_retries(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(500)
        client = _make_client(session)

        with pytest.raises(UpstreamServiceError):
            client.get_json("https://example.com")

    def test_other_client_error(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(404, body={"message": "Not Found"})
        client = _make_client(session)

        with pytest.raises(UpstreamServiceError) as exc_info:
            client.get_json("https://example.com")

        assert "status=404" in str(exc_info.value)

    def test_network_error_becomes_upstream_error(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = requests.ConnectionError("refused")
        client = _make_client(session)

        with pytest.raises(UpstreamServiceError):
            client.get_json("https://example.com")

    def test_non_object_body(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(body=[1, 2, 3])
        client = _make_client(session)

        with pytest.raises(UpstreamServiceError):
            client.get_json("https://example.com")

    def test_circuit_breaker_opens_on_repeated_failures(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(500)
        client = _make_client(session, circuit_breaker=CircuitBreaker(threshold=2))

        for _ in range(2):
            with pytest.raises(UpstreamServiceError):
                client.get_json("https://example.com")
        with pytest.raises(CircuitBreakerOpen):
            client.get_json("https://example.com")

        assert session.request.call_count == 2

    def test_open_breaker_blocks_until_recovered(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(body={"ok": True})
        limiter = RecordingRateLimiter()
        breaker = ScriptedCircuitBreaker(opens_after=1)
        breaker.record_failure()
        client = _make_client(session, rate_limiter=limiter, circuit_breaker=breaker)

        with pytest.raises(CircuitBreakerOpen):
            client.get_json("https://example.com")
        assert (session.request.call_count, limiter.calls) == (0, 0)

        breaker.recover()

        assert client.get_json("https://example.com") == {"ok": True}
        assert breaker.events == ["failure", "check", "recover", "check", "success"]
        assert breaker.failures == 0
        assert limiter.calls == 1

    def test_routed_lookups_share_one_client_across_workers(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(
            body={"routes": [{"distance": 1609.34, "duration": 60}]}
        )
        limiter = RecordingRateLimiter()
        breaker = ScriptedCircuitBreaker()
        client = _make_client(session, rate_limiter=limiter, circuit_breaker=breaker)
        provider = MapboxDrivingDistanceProvider(client=client, access_token="pk.test")
        technicians = [
            Technician(id=f"t{i}", name=f"Tech {i}", home_coordinate=offset_east(TARGET, i + 1.0))
            for i in range(5)
        ]

        ranked = TechnicianDistanceRanker(provider, lookup_bound=5).rank(TARGET, technicians)

        assert [row.driving_miles for row in ranked] == pytest.approx([1.0] * 5)
        assert limiter.calls == 5
        assert breaker.events.count("check") == 5
        assert breaker.events.count("success") == 5


class TestMapboxAdapters:
    """Tests for the Mapbox directions and geocoding adapters."""

    def test_directions_converts_units(self) -> None:
        client = FakeHttpClient(
            responses={"directions": {"routes": [{"distance": 16093.4, "duration": 900}]}}
        )
        provider = MapboxDrivingDistanceProvider(client=client, access_token="pk.test")

        routed = provider.driving_distance(Coordinate(39.8, -86.1), TARGET)

        assert routed is not None
        assert routed.distance_miles == pytest.approx(10.0)
        assert routed.duration_minutes == pytest.approx(15.0)
        method, url, params = client.calls[0]
        assert method == "GET"
        assert url.endswith("/-86.1,39.8;-86.1581,39.7684")
        assert params == {"access_token": "pk.test", "overview": "false"}

    def test_no_route(self) -> None:
        client = FakeHttpClient(responses={"directions": {"routes": [], "code": "NoRoute"}})
        provider = MapboxDrivingDistanceProvider(client=client, access_token="pk.test")
        assert provider.driving_distance(TARGET, TARGET) is None

    def test_unexpected_payload_is_no_route(self) -> None:
        client = FakeHttpClient(responses={"directions": {"routes": "nope"}})
        provider = MapboxDrivingDistanceProvider(client=client, access_token="pk.test")
        assert provider.driving_distance(TARGET, TARGET) is None

    def test_geocoder_reads_longitude_first_center(self) -> None:
        client = FakeHttpClient(
            responses={"mapbox.places": {"features": [{"center": [-86.15, 39.77]}]}}
        )
        geocoder = MapboxGeocoder(client=client, access_token="pk.test")

        assert geocoder.geocode("100 Monument Cir") == Coordinate(39.77, -86.15)
        _, url, params = client.calls[0]
        assert "100%20Monument%20Cir.json" in url
        assert params == {"access_token": "pk.test", "limit": "1"}

    def test_geocoder_no_match_and_blank_address(self) -> None:
        client = FakeHttpClient(responses={"mapbox.places": {"features": []}})
        geocoder = MapboxGeocoder(client=client, access_token="pk.test")
        assert geocoder.geocode("Nowhere") is None
        assert geocoder.geocode("   ") is None
        assert len(client.calls) == 1


class TestCensusBoundaryProvider:
    """Tests for ZCTA boundary lookups."""

    def test_returns_rings(self) -> None:
        geometry = {
            "type": "MultiPolygon",
            "coordinates": [[[[-86.2, 39.7], [-86.1, 39.7], [-86.1, 39.8], [-86.2, 39.7]]]],
        }
        client = FakeHttpClient(responses={"86000US46220": {"geometry": geometry}})
        provider = CensusBoundaryProvider(client=client, api_base="https://census.test/geo/")

        rings = provider.boundary_for_postal_code("46220")

        assert rings is not None
        assert len(rings) == 1
        assert client.calls[0] == ("GET", "https://census.test/geo/86000US46220", {"geom": "true"})

    def test_missing_geometry(self) -> None:
        client = FakeHttpClient(responses={"86000US": {"geometry": None}})
        provider = CensusBoundaryProvider(client=client, api_base="https://census.test/geo")
        assert provider.boundary_for_postal_code("46220") is None
        assert provider.boundary_for_postal_code(" ") is None


class TestChatCompletionsReasoningService:
    """Tests for the chat-completions reasoning adapter."""

    @staticmethod
    def _context(request: NewJobRequest):
        return build_scheduling_context(
            request,
            today=MONDAY,
            zones=[],
            technicians=[],
            skills=SkillConstraintModel([]),
            existing_jobs=[],
            completed_jobs=[],
            ranker=TechnicianDistanceRanker(None),
            config=RankingConfig(),
        )

    @staticmethod
    def _completion(content: str) -> dict[str, object]:
        return {"choices": [{"message": {"role": "assistant", "content": content}}]}

    def test_sends_prompt_and_parses_fenced_json(self, new_job_request: NewJobRequest) -> None:
        answer = {
            "suggestions": [{"date": "2026-03-03", "timeSlot": "08:00-09:30"}],
            "analysis": "ok",
            "warnings": [],
        }
        client = FakeHttpClient(
            responses={"chat": self._completion(f"```json\n{json.dumps(answer)}\n```")}
        )
        service = ChatCompletionsReasoningService(
            client=client, api_url="https://gateway.test/v1/chat/completions", model="m"
        )

        outcome = service.rank(self._context(new_job_request))

        assert isinstance(outcome, Parsed)
        assert outcome.suggestions[0].time_slot == "08:00-09:30"
        _, _, payload = client.calls[0]
        assert isinstance(payload, dict)
        assert payload["model"] == "m"
        assert payload["temperature"] == 0.3
        assert [m["role"] for m in payload["messages"]] == ["system", "user"]

    def test_prose_answer_is_unparseable(self, new_job_request: NewJobRequest) -> None:
        client = FakeHttpClient(responses={"chat": self._completion("Tuesday looks good.")})
        service = ChatCompletionsReasoningService(
            client=client, api_url="https://gateway.test/v1/chat/completions", model="m"
        )
        outcome = service.rank(self._context(new_job_request))
        assert outcome == Unparseable(raw_text="Tuesday looks good.")

    def test_upstream_errors_propagate(self, new_job_request: NewJobRequest) -> None:
        client = FakeHttpClient(errors={"chat": RateLimitError(retry_after=5)})
        service = ChatCompletionsReasoningService(
            client=client, api_url="https://gateway.test/v1/chat/completions", model="m"
        )
        with pytest.raises(RateLimitError):
            service.rank(self._context(new_job_request))


class TestClientBuilders:
    """Tests for preconfigured clients."""

    def test_mapbox_client_has_no_retries(self) -> None:
        client = build_mapbox_client(
            timeout_seconds=5, circuit_breaker_threshold=4, circuit_breaker_timeout_seconds=30
        )
        assert isinstance(client.retry_policy, RetryPolicy)
        assert client.retry_policy.max_retries == 0
        assert isinstance(client.circuit_breaker, CircuitBreaker)
        assert client.circuit_breaker.threshold == 4
        assert client.timeout_seconds == 5

    def test_reasoning_client_sends_bearer_token(self) -> None:
        client = build_reasoning_client(api_key="secret", timeout_seconds=60)
        assert client.headers["Authorization"] == "Bearer secret"
        assert isinstance(client.retry_policy, RetryPolicy)
        assert client.retry_policy.max_retries == 0

    def test_ingestion_client_uses_delay_and_retries(self) -> None:
        client = build_ingestion_client(
            provider_name="Census", min_delay_seconds=0.1, max_retries=3, backoff_factor=0.5
        )
        assert isinstance(client.rate_limiter, RateLimiter)
        assert client.rate_limiter.min_delay_seconds == 0.1
        assert isinstance(client.retry_policy, RetryPolicy)
        assert client.retry_policy.max_retries == 3
