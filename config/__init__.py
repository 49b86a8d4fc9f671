"""Configuration: bundled defaults, an optional YAML override file, then NODEALERT_* env vars."""
import logging
import os
import yaml
from pathlib import Path

_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"

# env var -> (section, key, converter)
ENV_OVERRIDES = {
    "NODEALERT_PUPPETDB_URL": ("puppetdb", "url", str),
    "NODEALERT_PUPPETDB_TIMEOUT": ("puppetdb", "timeout", int),
    "NODEALERT_RULES_PATH": ("alerts", "rules_path", str),
    "NODEALERT_TRIGGER_LOG": ("alerts", "log_path", str),
    "NODEALERT_MAX_WORKERS": ("evaluation", "max_workers", int),
    "NODEALERT_PASS_TIMEOUT": ("evaluation", "pass_timeout", int),
    "NODEALERT_CACHE_TTL": ("evaluation", "cache_ttl", int),
    "NODEALERT_INTERVAL": ("evaluation", "interval", int),
    "NODEALERT_LOG_LEVEL": ("logging", "level", str),
}

REQUIRED_SECTIONS = ("puppetdb", "alerts", "evaluation", "logging")


def load_config(path=None):
    """Load config from YAML, merging defaults with optional overrides."""
    with open(_DEFAULT_CONFIG) as f:
        config = yaml.safe_load(f)

    if path and Path(path).exists():
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
        config = _deep_merge(config, overrides)

    _apply_env(config, os.environ)
    _validate_config(config)
    return config


def _apply_env(config, environ):
    for env_key, (section, key, convert) in ENV_OVERRIDES.items():
        raw = environ.get(env_key)
        if not raw:
            continue
        try:
            config.setdefault(section, {})[key] = convert(raw)
        except ValueError:
            raise ValueError(f"{env_key} must be {convert.__name__}, got {raw!r}") from None


def _deep_merge(base, override):
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate_config(config):
    missing = [s for s in REQUIRED_SECTIONS if not isinstance(config.get(s), dict)]
    if missing:
        raise ValueError(f"Missing required config section(s): {', '.join(missing)}")

    url = str(config["puppetdb"].get("url") or "")
    if not url.startswith(("http://", "https://")):
        raise ValueError(f"puppetdb.url must be an http(s) URL, got {url!r}")

    evaluation = config["evaluation"]
    limits = {"max_workers": 1, "pass_timeout": 1, "interval": 30, "cache_ttl": 0}
    for key, minimum in limits.items():
        if evaluation.get(key, minimum) < minimum:
            raise ValueError(f"evaluation.{key} must be >= {minimum}")

    level = str(config["logging"].get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Unknown logging.level {level!r}")
