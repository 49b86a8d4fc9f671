"""Collaborator interfaces the engine consumes, plus shared parsing helpers."""
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable


@runtime_checkable
class NodeSource(Protocol):
    def list_nodes(self) -> list: ...

    def get_node_reports(self, certname: str, within_hours: float) -> list: ...

    def get_latest_report(self, certname: str): ...

    def get_node_facts(self, certname: str) -> dict: ...


@runtime_checkable
class GroupSource(Protocol):
    def get_node_groups(self, certname: str) -> list: ...


def parse_timestamp(value):
    """Parse an ISO-8601 string or datetime into an aware UTC datetime. None stays None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
