"""Tests for formatters, rate limiter, cache and HTTP client."""
import pytest
import time
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import requests

from utils.cache import TTLCache
from utils.formatters import format_ms, format_timestamp, time_ago
from utils.http_client import APIError, HTTPClient
from utils.rate_limiter import RateLimiter


def test_time_ago():
    now = datetime.now(timezone.utc)
    assert "s ago" in time_ago(now - timedelta(seconds=30))
    assert "m ago" in time_ago(now - timedelta(minutes=5))
    assert "h ago" in time_ago(now - timedelta(hours=2))
    assert "d ago" in time_ago(now - timedelta(days=3))
    assert time_ago(None) == "never"
    assert time_ago(now + timedelta(minutes=5), now=now) == "in the future"
    assert time_ago(now - timedelta(hours=25), now=now) == "1d ago"


def test_format_ms():
    assert format_ms(850) == "850ms"
    assert format_ms(2300) == "2.3s"
    assert format_ms(None) == "N/A"


def test_format_timestamp():
    ts = datetime(2026, 10, 19, 8, 5, tzinfo=timezone.utc)
    assert format_timestamp(ts) == "2026-10-19 08:05 UTC"
    assert format_timestamp(None) == "N/A"


# ── Rate limiter ───────────────────────────────────────

def test_rate_limiter_allows_burst():
    limiter = RateLimiter(calls_per_minute=60)
    start = time.monotonic()
    for _ in range(5):
        limiter.wait()
    assert time.monotonic() - start < 1


def test_rate_limiter_exhausts_tokens():
    limiter = RateLimiter(calls_per_minute=2)
    assert limiter.try_acquire()
    assert limiter.try_acquire()
    assert not limiter.try_acquire()


def test_rate_limiter_disabled():
    limiter = RateLimiter(calls_per_minute=0)
    assert all(limiter.try_acquire() for _ in range(100))
    limiter.wait()


# ── Cache ──────────────────────────────────────────────

def test_cache_set_get():
    cache = TTLCache(default_ttl=60)
    cache.set("key", "value")
    assert cache.get("key") == "value"
    assert cache.get("missing") is None


def test_cache_expiry():
    cache = TTLCache(default_ttl=0.1)
    cache.set("key", "value")
    time.sleep(0.15)
    assert cache.get("key") is None


def test_cache_get_or_load_caches_none():
    cache = TTLCache(default_ttl=60)
    loader = MagicMock(return_value=None)
    assert cache.get_or_load(("latest", "web01"), loader) is None
    assert cache.get_or_load(("latest", "web01"), loader) is None
    loader.assert_called_once()


def test_cache_loader_errors_not_cached():
    cache = TTLCache(default_ttl=60)
    loader = MagicMock(side_effect=[ConnectionError("down"), {"os.family": "RedHat"}])
    with pytest.raises(ConnectionError):
        cache.get_or_load("facts", loader)
    assert cache.get_or_load("facts", loader) == {"os.family": "RedHat"}


def test_cache_invalidate_and_clear():
    cache = TTLCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    assert len(cache) == 1
    cache.clear()
    assert len(cache) == 0


# ── HTTP client ────────────────────────────────────────

def _response(status, payload=None, text=""):
    resp = MagicMock(status_code=status, text=text, headers={})
    resp.json.return_value = payload
    return resp


@patch("utils.http_client.time.sleep")
def test_http_retries_then_succeeds(mock_sleep):
    client = HTTPClient("http://pdb:8080", max_retries=2)
    client.session.request = MagicMock(side_effect=[_response(503), _response(200, [{"certname": "a"}])])
    assert client.get("/pdb/query/v4/nodes") == [{"certname": "a"}]
    assert client.session.request.call_count == 2
    mock_sleep.assert_called_once()


@patch("utils.http_client.time.sleep")
def test_http_gives_up(mock_sleep):
    client = HTTPClient("http://pdb:8080", max_retries=1)
    client.session.request = MagicMock(side_effect=requests.exceptions.ConnectionError("refused"))
    with pytest.raises(APIError):
        client.get("/pdb/query/v4/nodes")
    assert client.session.request.call_count == 2
    assert mock_sleep.call_count == 1


def test_http_invalid_json():
    client = HTTPClient("http://pdb:8080", max_retries=0)
    resp = _response(200, text="<html>")
    resp.json.side_effect = ValueError("not json")
    client.session.request = MagicMock(return_value=resp)
    with pytest.raises(APIError) as exc:
        client.get("/pdb/query/v4/nodes")
    assert "Invalid JSON" in str(exc.value)


def test_http_tls_settings():
    client = HTTPClient("https://pdb:8081/", verify="/ca.pem", cert=("/c.pem", "/k.pem"))
    assert client.base_url == "https://pdb:8081"
    assert client.session.verify == "/ca.pem"
    assert client.session.cert == ("/c.pem", "/k.pem")
