"""Static YAML inventory: nodes, facts, groups and report history in one file.

Useful for dry runs without PuppetDB and as a fixture source in tests:

    nodes:
      - certname: web01.example.com
        environment: production
        status: failed
        groups: [webservers]
        facts: {os: {family: RedHat}}
        reports:
          - timestamp: 2026-10-19T08:00:00Z
            status: failed
            metrics: {resources: {changed: 2, failed: 1, total: 40}}
            resource_changes: ["Class[Apache::Server]"]
    groups:
      webservers: [web02.example.com]
"""
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import yaml

from alerts.temporal import ensure_utc
from models.enums import NodeStatus
from models.nodes import NodeSnapshot, ReportSnapshot, ResourceChange
from sources.base import parse_timestamp
from utils.facts import flatten_facts

logger = logging.getLogger("nodealert.inventory")


class InventorySource:
    """In-memory NodeSource and GroupSource."""

    def __init__(self, data=None, clock=None):
        data = data or {}
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._nodes = {}
        self._facts = {}
        self._reports = {}
        self._groups = {}

        for raw in data.get("nodes", []):
            self._load_node(raw)
        for group_id, members in (data.get("groups") or {}).items():
            for certname in members or []:
                self._groups.setdefault(certname, set()).add(str(group_id))

    @classmethod
    def from_file(cls, path, clock=None):
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        source = cls(data, clock=clock)
        logger.info(f"Loaded {len(source._nodes)} nodes from {path}")
        return source

    def _load_node(self, raw):
        certname = raw["certname"]
        reports = tuple(self._report(certname, r) for r in raw.get("reports") or [])
        latest = max(reports, key=lambda r: r.timestamp) if reports else None

        last_report = raw.get("last_report", raw.get("report_timestamp"))
        known = last_report != "unknown"
        if not known:
            last_report = None
        elif last_report is None and latest is not None:
            last_report = latest.timestamp

        status = raw.get("status")
        if status is None:
            status = latest.status.value if latest is not None else None
        node_status = (NodeStatus(status) if status in {s.value for s in NodeStatus}
                       else NodeStatus.from_puppet(status, raw.get("noop", False)))

        self._groups.setdefault(certname, set()).update(str(g) for g in raw.get("groups") or [])
        self._facts[certname] = flatten_facts(raw.get("facts") or {})
        self._reports[certname] = reports
        self._nodes[certname] = dict(
            certname=certname,
            environment=raw.get("environment"),
            status=node_status,
            last_report_timestamp=parse_timestamp(last_report),
            last_report_known=known,
        )

    @staticmethod
    def _report(certname, raw):
        changes = []
        for change in raw.get("resource_changes") or []:
            if isinstance(change, str):
                changes.append(ResourceChange(resource_type=change))
            else:
                changes.append(ResourceChange(
                    resource_type=change["resource_type"],
                    resource_title=change.get("resource_title", ""),
                    status=change.get("status", "success"),
                ))
        return ReportSnapshot(
            certname=certname,
            timestamp=parse_timestamp(raw["timestamp"]),
            status=NodeStatus.from_puppet(raw.get("status"), raw.get("noop", False)),
            metrics=flatten_facts(raw.get("metrics") or {}),
            resource_changes=tuple(changes),
        )

    # ── NodeSource ─────────────────────────────────────

    def list_nodes(self):
        return [
            NodeSnapshot(group_ids=frozenset(self._groups.get(certname, ())),
                         facts=dict(self._facts[certname]), **fields)
            for certname, fields in sorted(self._nodes.items())
        ]

    def get_node_reports(self, certname, within_hours):
        cutoff = ensure_utc(self._clock()) - timedelta(hours=within_hours)
        return [r for r in self._reports.get(certname, ()) if r.timestamp >= cutoff]

    def get_latest_report(self, certname):
        reports = self._reports.get(certname, ())
        return max(reports, key=lambda r: r.timestamp) if reports else None

    def get_node_facts(self, certname):
        return dict(self._facts.get(certname, {}))

    # ── GroupSource ────────────────────────────────────

    def get_node_groups(self, certname):
        return sorted(self._groups.get(certname, ()))
