import logging

import pytest
import requests

from authcodes.clock import clock_utils

LOCAL_NOW = 1704067200.0  # 2024-01-01T00:00:00Z


class FakeResp:
    def __init__(self, payload=None, status_code=200, json_error=None):
        self.payload = payload
        self.status_code = status_code
        self.json_error = json_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.json_error is not None:
            raise self.json_error
        return self.payload


def _serve(monkeypatch, response=None, error=None):
    requested = []

    def fake_get(url, timeout=None):
        requested.append((url, timeout))
        if error is not None:
            raise error
        return response

    monkeypatch.setattr(clock_utils.requests, "get", fake_get)
    return requested


def test_offset_from_authoritative_time(monkeypatch):
    requested = _serve(monkeypatch, FakeResp({"datetime": "2024-01-01T02:00:10.250000+02:00"}))
    correction = clock_utils.reconcile_clock("https://time.test/api", timeout=2, clock=lambda: LOCAL_NOW)
    assert correction == clock_utils.ClockCorrection(offset=10, applied=True, source="https://time.test/api")
    assert requested == [("https://time.test/api", 2)]


def test_negative_offset_is_floored(monkeypatch):
    _serve(monkeypatch, FakeResp({"datetime": "2024-01-01T00:00:00+00:00"}))
    correction = clock_utils.reconcile_clock("https://time.test/api", clock=lambda: LOCAL_NOW + 0.5)
    assert correction.offset == -1
    assert correction.applied


def test_naive_and_zulu_datetimes_are_utc(monkeypatch):
    _serve(monkeypatch, FakeResp({"utc_datetime": "2024-01-01T00:01:00"}))
    assert clock_utils.reconcile_clock("https://time.test", clock=lambda: LOCAL_NOW).offset == 60
    _serve(monkeypatch, FakeResp({"datetime": "2024-01-01T00:00:05Z"}))
    assert clock_utils.reconcile_clock("https://time.test", clock=lambda: LOCAL_NOW).offset == 5


@pytest.mark.parametrize(
    "response,error",
    [
        (None, requests.ConnectionError("offline")),
        (None, requests.Timeout("slow")),
        (FakeResp({"datetime": "2024-01-01T00:00:00Z"}, status_code=503), None),
        (FakeResp(json_error=ValueError("not json")), None),
        (FakeResp({"unixtime": 1704067200}), None),
        (FakeResp({"datetime": "yesterday"}), None),
        (FakeResp(["2024-01-01T00:00:00Z"]), None),
    ],
)
def test_failures_degrade_to_zero_offset(monkeypatch, caplog, response, error):
    _serve(monkeypatch, response, error)
    with caplog.at_level(logging.WARNING, logger="authcodes.clock.clock_utils"):
        correction = clock_utils.reconcile_clock("https://time.test", clock=lambda: LOCAL_NOW)
    assert correction.offset == 0
    assert not correction.applied
    assert "using local time" in caplog.text


def test_get_offset_returns_integer(monkeypatch):
    _serve(monkeypatch, error=requests.ConnectionError("offline"))
    assert clock_utils.get_offset("https://time.test") == 0


def test_environment_configures_source(monkeypatch):
    requested = _serve(monkeypatch, error=requests.ConnectionError("offline"))
    monkeypatch.setenv(clock_utils.TIME_URL_ENV, "https://env.test/now")
    monkeypatch.setenv(clock_utils.TIME_TIMEOUT_ENV, "1.5")
    clock_utils.get_offset()
    assert requested == [("https://env.test/now", 1.5)]


def test_defaults_without_environment(monkeypatch):
    monkeypatch.delenv(clock_utils.TIME_URL_ENV, raising=False)
    monkeypatch.setenv(clock_utils.TIME_TIMEOUT_ENV, "soon")
    assert clock_utils.configured_time_url() == clock_utils.DEFAULT_TIME_SOURCE_URL
    assert clock_utils.configured_timeout() == clock_utils.DEFAULT_TIMEOUT_SECONDS


def test_corrected_time():
    assert clock_utils.corrected_time(-5, clock=lambda: 100.0) == 95.0
