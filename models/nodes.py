"""Dataclasses for node and report snapshots supplied by the node source."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from models.enums import NodeStatus


@dataclass(frozen=True)
class NodeSnapshot:
    certname: str
    environment: Optional[str] = None
    status: NodeStatus = NodeStatus.UNKNOWN
    last_report_timestamp: Optional[datetime] = None
    group_ids: frozenset = frozenset()
    # Flattened dotted-path facts; None until fetched
    facts: Optional[dict] = field(default=None, hash=False, compare=False)
    # False when the source cannot tell whether the node ever reported
    last_report_known: bool = True


@dataclass(frozen=True)
class ResourceChange:
    resource_type: str
    resource_title: str = ""
    status: str = "success"


@dataclass(frozen=True)
class ReportSnapshot:
    certname: str
    timestamp: datetime
    status: NodeStatus = NodeStatus.UNKNOWN
    metrics: dict = field(default_factory=dict, hash=False, compare=False)
    resource_changes: tuple = ()
