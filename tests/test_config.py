"""Tests for configuration loading."""
import pytest
import sys
import os
import tempfile
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import yaml

from config import _deep_merge, load_config
from sources.puppetdb import PuppetDBSource


def _write(data):
    f = tempfile.NamedTemporaryFile(suffix=".yaml", mode="w", delete=False)
    yaml.safe_dump(data, f)
    f.close()
    return f.name


def test_defaults():
    config = load_config()
    assert config["puppetdb"]["url"] == "http://localhost:8080"
    assert config["evaluation"]["max_workers"] == 8
    assert config["evaluation"]["cache_ttl"] == 600
    assert config["alerts"]["rules_path"] == "config/alert_rules.yaml"


def test_override_file_merges():
    path = _write({"puppetdb": {"url": "https://pdb.example.com:8081"},
                   "evaluation": {"max_workers": 2}})
    try:
        config = load_config(path)
    finally:
        os.unlink(path)
    assert config["puppetdb"]["url"] == "https://pdb.example.com:8081"
    assert config["puppetdb"]["timeout"] == 30
    assert config["evaluation"]["max_workers"] == 2
    assert config["evaluation"]["pass_timeout"] == 300


def test_missing_override_file_uses_defaults():
    assert load_config("/nonexistent/config.yaml")["logging"]["level"] == "INFO"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("NODEALERT_PUPPETDB_URL", "http://pdb:8080")
    monkeypatch.setenv("NODEALERT_MAX_WORKERS", "16")
    config = load_config()
    assert config["puppetdb"]["url"] == "http://pdb:8080"
    assert config["evaluation"]["max_workers"] == 16


def test_puppetdb_timeout_env_reaches_client(monkeypatch):
    monkeypatch.setenv("NODEALERT_PUPPETDB_TIMEOUT", "5")
    config = load_config()
    assert config["puppetdb"]["timeout"] == 5
    assert PuppetDBSource.from_config(config).client.timeout == 5


def test_invalid_values_rejected():
    for bad in ({"evaluation": {"max_workers": 0}}, {"evaluation": {"interval": 5}},
                {"evaluation": {"cache_ttl": -1}}):
        path = _write(bad)
        try:
            with pytest.raises(ValueError):
                load_config(path)
        finally:
            os.unlink(path)


def test_bad_env_value(monkeypatch):
    monkeypatch.setenv("NODEALERT_MAX_WORKERS", "lots")
    with pytest.raises(ValueError, match="NODEALERT_MAX_WORKERS"):
        load_config()


def test_puppetdb_url_must_be_http():
    path = _write({"puppetdb": {"url": "puppetdb:8080"}})
    try:
        with pytest.raises(ValueError, match="puppetdb.url"):
            load_config(path)
    finally:
        os.unlink(path)


def test_deep_merge():
    merged = _deep_merge({"a": {"b": 1, "c": 2}, "d": 3}, {"a": {"c": 5}, "e": 6})
    assert merged == {"a": {"b": 1, "c": 5}, "d": 3, "e": 6}
