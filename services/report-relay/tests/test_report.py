# =============================================================================
# Report Relay - API Tests
# =============================================================================
"""
End-to-end tests for the /report endpoint.

Tests cover:
- Successful relay and the forwarded message shape
- Body and brainrots validation
- Global and burst rate limiting
- Sink failures and internal errors
- Body size cap and response headers
- Client identity behind trusted proxies
"""

import asyncio
import json
from unittest.mock import patch

import httpx
import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from conftest import make_settings
from report_relay.api.routes import client_identity
from report_relay.exceptions import PayloadTooLarge
from report_relay.main import create_app
from report_relay.middleware.request_size import SizeLimitedReceive


def forwarded_message(sink) -> dict:
    """Decode the last message delivered to the mocked sink."""
    return json.loads(sink.calls.last.request.content)


def post_report(client, body, ip="203.0.113.7"):
    return client.post("/report", json=body, headers={"X-Forwarded-For": ip})


# =============================================================================
# Health Check Tests
# =============================================================================

class TestHealthCheck:
    """Tests for the health check endpoint."""

    def test_health_check_returns_healthy(self, client):
        """Health check should return healthy status."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "report-relay"
        assert "timestamp" in data

    def test_health_check_is_not_rate_limited(self, client):
        """Health probes never consume report quota."""
        for _ in range(20):
            assert client.get("/health").status_code == 200

        assert post_report(client, {"brainrots": []}).status_code == 200


# =============================================================================
# Successful Relay Tests
# =============================================================================

class TestRelay:
    """Tests for accepted reports."""

    def test_valid_report_returns_ok(self, client, sink):
        """A valid report is forwarded once and acknowledged."""
        response = post_report(
            client,
            {"brainrots": ["Los Tralaleritos", "  "], "playerCount": "3", "playerName": "X"},
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert sink.call_count == 1

        embed = forwarded_message(sink)["embeds"][0]
        assert embed["description"] == "**Brainrots Encontrados:**\nLos Tralaleritos"
        assert embed["fields"][0]["value"] == "X"
        assert embed["fields"][1]["value"] == "3"

    def test_defaults_applied_for_missing_fields(self, client, sink):
        """Missing optional fields fall back to their literals."""
        response = post_report(client, {"brainrots": []})

        assert response.status_code == 200
        message = forwarded_message(sink)
        embed = message["embeds"][0]
        assert message["username"] == "Souza Logger"
        assert embed["title"] == "Auto Souza"
        assert embed["description"] == "Nenhum brainrot secreto detectado neste scan."
        assert [f["value"] for f in embed["fields"]] == ["N/A", "0", "N/A"]

    def test_only_first_25_brainrots_forwarded(self, client, sink):
        """Entries beyond the 25th are discarded."""
        brainrots = [f"brainrot-{i}" for i in range(30)]

        response = post_report(client, {"brainrots": brainrots})

        assert response.status_code == 200
        lines = forwarded_message(sink)["embeds"][0]["description"].split("\n")
        assert lines[1:] == brainrots[:25]

    def test_control_characters_never_reach_sink(self, client, sink):
        """Control characters are stripped from every forwarded string."""
        post_report(
            client,
            {
                "brainrots": ["Tung\x00 Tung\n Sahur"],
                "playerName": "evil\r\nname",
                "username": "\x1bbot",
                "title": "ti\ttle",
                "privateServerLink": "https://example.com/\x07x",
            },
        )

        raw = sink.calls.last.request.content.decode("utf-8")
        message = json.loads(raw)
        embed = message["embeds"][0]
        assert embed["description"].split("\n")[1] == "Tung Tung Sahur"
        assert embed["fields"][0]["value"] == "evilname"
        assert message["username"] == "bot"
        assert embed["title"] == "title"
        assert embed["fields"][2]["value"] == "https://example.com/x"

    def test_timestamp_is_server_generated(self, client, sink):
        """A client-supplied timestamp is ignored."""
        post_report(client, {"brainrots": ["a"], "timestamp": "1999-01-01T00:00:00.000Z"})

        timestamp = forwarded_message(sink)["embeds"][0]["timestamp"]
        assert timestamp != "1999-01-01T00:00:00.000Z"
        assert timestamp.endswith("Z")

    def test_success_carries_rate_limit_headers(self, client):
        """Accepted reports advertise the remaining global quota."""
        response = post_report(client, {"brainrots": []})

        assert response.headers["RateLimit-Limit"] == "6"
        assert response.headers["RateLimit-Remaining"] == "5"

    def test_security_headers_present(self, client):
        """Hardening headers are set on responses."""
        response = post_report(client, {"brainrots": []})

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"


# =============================================================================
# Validation Tests
# =============================================================================

class TestValidation:
    """Tests for rejected bodies."""

    def test_missing_brainrots_returns_400(self, client, sink):
        """An empty object has no brainrots list."""
        response = post_report(client, {})

        assert response.status_code == 400
        assert response.json() == {"ok": False, "msg": "invalid_brainrots"}
        assert sink.call_count == 0

    def test_non_list_brainrots_returns_400(self, client):
        """brainrots must be a list, not a string."""
        response = post_report(client, {"brainrots": "Los Tralaleritos"})

        assert response.status_code == 400
        assert response.json()["msg"] == "invalid_brainrots"

    @pytest.mark.parametrize("body", [[1, 2, 3], "text", 42, None])
    def test_non_object_body_returns_400(self, client, body):
        """Only JSON objects are accepted."""
        response = post_report(client, body)

        assert response.status_code == 400
        assert response.json() == {"ok": False, "msg": "invalid_body"}

    def test_malformed_json_returns_400(self, client):
        """Undecodable bodies are invalid_body."""
        response = client.post(
            "/report",
            content=b"{not json",
            headers={"Content-Type": "application/json", "X-Forwarded-For": "198.51.100.1"},
        )

        assert response.status_code == 400
        assert response.json()["msg"] == "invalid_body"


# =============================================================================
# Rate Limiting Tests
# =============================================================================

class TestRateLimiting:
    """Tests for the global and burst limiters at the HTTP layer."""

    def test_seventh_request_in_window_is_rejected(self, client, sink):
        """More than 6 requests per minute from one client get 429."""
        for _ in range(6):
            assert post_report(client, {"brainrots": []}).status_code == 200

        response = post_report(client, {"brainrots": []})

        assert response.status_code == 429
        assert response.json() == {"ok": False, "msg": "rate_limited"}
        assert "Retry-After" in response.headers
        assert sink.call_count == 6

    def test_global_limit_applies_before_body_parsing(self, client):
        """A throttled client gets 429 even for a malformed body."""
        for _ in range(6):
            post_report(client, {"brainrots": []})

        response = client.post(
            "/report",
            content=b"{broken",
            headers={"Content-Type": "application/json", "X-Forwarded-For": "203.0.113.7"},
        )

        assert response.status_code == 429

    def test_limits_are_per_client(self, client):
        """One client's quota does not affect another's."""
        for _ in range(7):
            post_report(client, {"brainrots": []}, ip="203.0.113.7")

        assert post_report(client, {"brainrots": []}, ip="203.0.113.8").status_code == 200

    def test_burst_layer_rejects_eleventh_rapid_request(self, sink):
        """With a generous global cap, the burst tracker still stops hammering."""
        settings = make_settings(global_rate_limit_max_requests=100)

        with TestClient(create_app(settings)) as client:
            statuses = [post_report(client, {"brainrots": []}).status_code for _ in range(11)]

        assert statuses[:10] == [200] * 10
        assert statuses[10] == 429


# =============================================================================
# Sink Failure Tests
# =============================================================================

class TestSinkFailures:
    """Tests for forwarding failures."""

    def test_sink_error_returns_502_with_status(self, client, sink):
        """A non-2xx from the sink is surfaced as discord_error."""
        sink.mock(return_value=httpx.Response(500))

        response = post_report(client, {"brainrots": ["a"]})

        assert response.status_code == 502
        assert response.json() == {"ok": False, "msg": "discord_error", "status": 500}

    def test_sink_rate_limit_returns_502(self, client, sink):
        """Sink throttling is a sink error, not a client throttle."""
        sink.mock(return_value=httpx.Response(429))

        response = post_report(client, {"brainrots": ["a"]})

        assert response.status_code == 502
        assert response.json()["status"] == 429

    def test_unreachable_sink_returns_502(self, client, sink):
        """Transport failures map to discord_error without a status."""
        sink.mock(side_effect=httpx.ConnectError)

        response = post_report(client, {"brainrots": ["a"]})

        assert response.status_code == 502
        assert response.json() == {"ok": False, "msg": "discord_error"}

    def test_sink_timeout_returns_502(self, client, sink):
        """Timeouts are not retried."""
        sink.mock(side_effect=httpx.ReadTimeout)

        response = post_report(client, {"brainrots": ["a"]})

        assert response.status_code == 502
        assert sink.call_count == 1

    def test_unexpected_error_returns_opaque_500(self, client):
        """Internal failures never leak details."""
        with patch(
            "report_relay.api.routes.build_message",
            side_effect=RuntimeError("secret internals"),
        ):
            response = post_report(client, {"brainrots": ["a"]})

        assert response.status_code == 500
        assert response.json() == {"ok": False, "msg": "server_error"}
        assert "secret" not in response.text


# =============================================================================
# Body Size Tests
# =============================================================================

class TestBodySize:
    """Tests for the request body cap."""

    def test_oversized_body_returns_413(self, client, sink):
        """Bodies above 150 KB are refused before reaching the route."""
        body = {"brainrots": ["x" * 1000] * 200}

        response = post_report(client, body)

        assert response.status_code == 413
        assert response.json() == {"ok": False, "msg": "payload_too_large"}
        assert sink.call_count == 0

    def test_early_413_carries_security_headers(self, client):
        """The Content-Length rejection is still hardened."""
        response = post_report(client, {"brainrots": ["x" * 1000] * 200})

        assert response.status_code == 413
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Content-Security-Policy"].startswith("default-src")

    def test_chunked_oversized_body_returns_413(self, client, sink):
        """Bodies without Content-Length are capped while streaming."""
        def chunks():
            yield b'{"brainrots": ["'
            for _ in range(200):
                yield b"x" * 1000
            yield b'"]}'

        response = client.post(
            "/report",
            content=chunks(),
            headers={"Content-Type": "application/json", "X-Forwarded-For": "203.0.113.7"},
        )

        assert response.status_code == 413
        assert response.json() == {"ok": False, "msg": "payload_too_large"}
        assert sink.call_count == 0
        # the limiters ran before the body was read
        assert response.headers["RateLimit-Remaining"] == "5"
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_oversized_body_does_not_consume_quota(self, client):
        """Requests refused on Content-Length never reach the limiters."""
        for _ in range(8):
            post_report(client, {"brainrots": ["x" * 1000] * 200})

        assert post_report(client, {"brainrots": []}).status_code == 200

    def test_size_limited_receive_raises_past_cap(self):
        """Streamed chunks are summed across messages."""
        messages = [
            {"type": "http.request", "body": b"x" * 60, "more_body": True},
            {"type": "http.request", "body": b"x" * 60, "more_body": False},
        ]

        async def receive():
            return messages.pop(0)

        async def read_all():
            limited = SizeLimitedReceive(receive, max_size=100)
            await limited()
            await limited()

        with pytest.raises(PayloadTooLarge):
            asyncio.run(read_all())


# =============================================================================
# Client Identity Tests
# =============================================================================

class TestClientIdentity:
    """Tests for proxy header handling."""

    def test_forwarded_for_ignored_without_trust_proxy(self, sink):
        """Spoofed X-Forwarded-For cannot dodge limits when proxy trust is off."""
        settings = make_settings(trust_proxy=False)

        with TestClient(create_app(settings)) as client:
            statuses = [
                post_report(client, {"brainrots": []}, ip=f"10.0.0.{i}").status_code
                for i in range(7)
            ]

        assert statuses[-1] == 429

    def test_spoofed_leftmost_hop_does_not_reset_quota(self, client):
        """Only the address appended by the proxy identifies the caller."""
        statuses = [
            post_report(client, {"brainrots": []}, ip=f"1.2.3.{i}, 203.0.113.7").status_code
            for i in range(7)
        ]

        assert statuses[:6] == [200] * 6
        assert statuses[6] == 429

    def test_identity_counts_configured_proxy_hops(self, sink):
        """With two proxies, the caller is the second entry from the right."""
        settings = make_settings(trusted_proxy_hops=2)

        with TestClient(create_app(settings)) as client:
            statuses = [
                post_report(
                    client, {"brainrots": []}, ip=f"1.2.3.{i}, 203.0.113.7, 10.0.0.1"
                ).status_code
                for i in range(7)
            ]

        assert statuses[-1] == 429

    @pytest.mark.parametrize(
        "forwarded, hops, expected",
        [
            ("203.0.113.7", 1, "203.0.113.7"),
            ("6.6.6.6, 203.0.113.7", 1, "203.0.113.7"),
            ("6.6.6.6,203.0.113.7, 10.0.0.1", 2, "203.0.113.7"),
            ("203.0.113.7", 2, "testclient"),
            ("6.6.6.6, ", 1, "testclient"),
        ],
    )
    def test_client_identity_resolution(self, forwarded, hops, expected):
        """Too few hops or a blank trusted hop fall back to the socket peer."""
        request = Request({
            "type": "http",
            "headers": [(b"x-forwarded-for", forwarded.encode("latin-1"))],
            "client": ("testclient", 50000),
        })

        assert client_identity(request, trust_proxy=True, proxy_hops=hops) == expected
