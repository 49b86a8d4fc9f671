"""Formatting utilities for display."""
from datetime import datetime, timezone


def format_timestamp(ts):
    """Format a datetime as 'YYYY-MM-DD HH:MM UTC', converting aware times to UTC."""
    if ts is None:
        return "N/A"
    if isinstance(ts, str):
        return ts
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%d %H:%M UTC")


def format_ms(ms):
    """850 -> '850ms', 2300 -> '2.3s'."""
    if ms is None:
        return "N/A"
    return f"{ms:.0f}ms" if ms < 1000 else f"{ms / 1000:.1f}s"


_UNITS = ((86400, "d"), (3600, "h"), (60, "m"), (1, "s"))


def time_ago(dt, now=None):
    """Largest whole unit since dt: '45s ago', '3h ago', '2d ago'. 'never' for None."""
    if dt is None:
        return "never"
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    seconds = int(((now or datetime.now(timezone.utc)) - dt).total_seconds())
    if seconds < 0:
        return "in the future"
    for size, unit in _UNITS:
        if seconds >= size:
            return f"{seconds // size}{unit} ago"
    return "0s ago"
