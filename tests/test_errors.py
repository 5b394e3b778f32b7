"""
Tests for error classification and error-body handling.
"""
from datetime import datetime, timezone

import pytest

from aisdk.exceptions import (
    AuthenticationError,
    BodyReadError,
    ConnectTimeoutError,
    HttpStatusError,
    IdleReadTimeoutError,
    NetworkError,
    ProviderError,
    RateLimitError,
    RequestTimeoutError,
    display_body_for_error,
    error_to_json,
    map_transport_error,
    parse_openai_error_message,
    parse_retry_after_ms,
    retry_after_from_headers,
)


@pytest.mark.parametrize("status", [401, 403])
def test_auth_statuses(status):
    assert isinstance(map_transport_error(HttpStatusError(status, "denied")), AuthenticationError)


def test_request_timeout_status():
    assert isinstance(map_transport_error(HttpStatusError(408)), RequestTimeoutError)


@pytest.mark.parametrize("status", [425, 429])
def test_rate_limit_statuses(status):
    err = map_transport_error(HttpStatusError(status, '{"error": "slow down"}', retry_after_ms=1500))
    assert isinstance(err, RateLimitError)
    assert err.retry_after_ms == 1500
    assert "http status" in err.format_details()


def test_provider_error_uses_parsed_message():
    body = '{"error": {"message": "model not found", "type": "invalid_request_error"}}'
    err = map_transport_error(HttpStatusError(404, body), parse_openai_error_message)
    assert isinstance(err, ProviderError)
    assert err.status == 404
    assert err.message == "model not found"
    assert str(err) == "upstream error (status 404): model not found"


def test_provider_error_without_parser_falls_back_to_status():
    err = map_transport_error(HttpStatusError(502, "<html>bad gateway</html>"))
    assert isinstance(err, ProviderError)
    assert err.message == "http status 502"


def test_provider_error_parser_failure_is_tolerated():
    def broken(body):
        raise RuntimeError("parser bug")

    err = map_transport_error(HttpStatusError(500, '{"x": 1}'), broken)
    assert err.message == "http status 500"


def test_timeouts_map_to_request_timeout():
    assert isinstance(map_transport_error(ConnectTimeoutError(10.0)), RequestTimeoutError)
    assert isinstance(map_transport_error(IdleReadTimeoutError(45.0)), RequestTimeoutError)


def test_other_transport_errors_pass_through():
    err = NetworkError("connection reset")
    assert map_transport_error(err) is err
    read = BodyReadError("truncated")
    assert map_transport_error(read) is read


def test_body_is_never_displayed_raw():
    assert display_body_for_error('{ "error" : "x" }') == '{"error":"x"}'
    assert display_body_for_error("secret token abc") == "16 bytes"
    err = HttpStatusError(500, "secret token abc")
    assert "secret" not in str(err)
    assert err.sanitized_message() == "http status 500"


def test_empty_body_uses_status():
    assert HttpStatusError(503, "   ").sanitized == "http status 503"
    assert str(HttpStatusError(429)) == "http status 429"
    assert str(HttpStatusError(429, "{}")) == "http status 429: {}"


def test_parse_retry_after():
    assert parse_retry_after_ms("2") == 2000
    assert parse_retry_after_ms("0.5") == 500
    assert parse_retry_after_ms("-1") is None
    assert parse_retry_after_ms("") is None
    assert parse_retry_after_ms(None) is None
    assert parse_retry_after_ms("garbage") is None
    assert parse_retry_after_ms("1e400") is None
    assert parse_retry_after_ms("1e308") is None
    assert parse_retry_after_ms("nan") is None

    now = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
    assert parse_retry_after_ms("Mon, 01 Jan 2024 00:00:03 GMT", now=now) == 3000
    assert parse_retry_after_ms("Sun, 31 Dec 2023 23:59:00 GMT", now=now) == 0


def test_retry_after_from_headers_prefers_ms():
    assert retry_after_from_headers({"Retry-After-Ms": "250", "Retry-After": "9"}) == 250
    assert retry_after_from_headers({"retry-after": "1"}) == 1000
    assert retry_after_from_headers({}) is None


def test_retry_after_from_headers_ignores_non_finite_values():
    assert retry_after_from_headers({"retry-after-ms": "inf", "retry-after": "2"}) == 2000
    assert retry_after_from_headers({"retry-after-ms": "nan"}) is None
    assert retry_after_from_headers({"retry-after": "1e400"}) is None


def test_parse_openai_error_message_shapes():
    assert parse_openai_error_message('{"error": {"message": "m"}}') == "m"
    assert parse_openai_error_message('{"error": "flat"}') == "flat"
    assert parse_openai_error_message('{"message": "top"}') == "top"
    assert parse_openai_error_message("not json") is None


def test_error_to_json():
    assert error_to_json(ProviderError(500, "boom")) == {"message": "http status 500: boom"}
    assert error_to_json(ValueError("plain")) == {"message": "plain"}
