"""Utility modules for nodealert."""
from utils.logger import setup_logging
from utils.formatters import format_timestamp, format_ms, time_ago
from utils.rate_limiter import RateLimiter
from utils.cache import TTLCache
from utils.http_client import HTTPClient, APIError
from utils.facts import flatten_facts
