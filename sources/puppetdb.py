"""PuppetDB v4 query API node source."""
import json
import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import urlparse

from models.enums import NodeStatus
from models.nodes import NodeSnapshot, ReportSnapshot, ResourceChange
from sources.base import parse_timestamp
from utils.facts import flatten_facts
from utils.http_client import HTTPClient
from utils.rate_limiter import RateLimiter

logger = logging.getLogger("nodealert.puppetdb")

NODES_PATH = "/pdb/query/v4/nodes"
REPORTS_PATH = "/pdb/query/v4/reports"

_REPORT_ORDER = json.dumps([{"field": "producer_timestamp", "order": "desc"}])


class PuppetDBSource:
    """Node, fact and report snapshots from PuppetDB."""

    def __init__(self, url, timeout=30, rate_limit=600, ssl_verify=True, ssl_cert=None,
                 ssl_key=None, ssl_ca=None, clock=None):
        cert = (ssl_cert, ssl_key) if ssl_cert and ssl_key else ssl_cert
        self.client = HTTPClient(
            base_url=url,
            rate_limiter=RateLimiter(rate_limit),
            timeout=timeout,
            max_retries=1,
            verify=ssl_ca or ssl_verify,
            cert=cert,
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_config(cls, config):
        cfg = config.get("puppetdb", {})
        return cls(
            url=cfg.get("url", "http://localhost:8080"),
            timeout=cfg.get("timeout", 30),
            rate_limit=cfg.get("rate_limit", 600),
            ssl_verify=cfg.get("ssl_verify", True),
            ssl_cert=cfg.get("ssl_cert"),
            ssl_key=cfg.get("ssl_key"),
            ssl_ca=cfg.get("ssl_ca"),
        )

    # ── NodeSource ─────────────────────────────────────

    def list_nodes(self):
        data = self.client.get(NODES_PATH)
        nodes = [self._node(n) for n in data if not n.get("deactivated") and not n.get("expired")]
        logger.debug(f"PuppetDB returned {len(data)} nodes, {len(nodes)} active")
        return nodes

    def get_node_facts(self, certname):
        data = self.client.get(f"{NODES_PATH}/{certname}/facts")
        return flatten_facts({f["name"]: f["value"] for f in data})

    def get_node_reports(self, certname, within_hours):
        cutoff = self._clock() - timedelta(hours=within_hours)
        query = ["and",
                 ["=", "certname", certname],
                 [">=", "producer_timestamp", cutoff.isoformat()]]
        data = self.client.get(REPORTS_PATH, params={
            "query": json.dumps(query),
            "order_by": _REPORT_ORDER,
        })
        return [self._report(r) for r in data]

    def get_latest_report(self, certname):
        query = ["and", ["=", "certname", certname], ["=", "latest_report?", True]]
        data = self.client.get(REPORTS_PATH, params={"query": json.dumps(query), "limit": 1})
        return self._report(data[0]) if data else None

    def close(self):
        self.client.close()

    # ── decoding ───────────────────────────────────────

    @staticmethod
    def _node(raw):
        return NodeSnapshot(
            certname=raw["certname"],
            environment=(raw.get("report_environment") or raw.get("catalog_environment")
                         or raw.get("facts_environment")),
            status=NodeStatus.from_puppet(raw.get("latest_report_status"),
                                          raw.get("latest_report_noop") or False),
            last_report_timestamp=parse_timestamp(raw.get("report_timestamp")),
        )

    def _report(self, raw):
        timestamp = parse_timestamp(raw.get("producer_timestamp") or raw.get("end_time")
                                    or raw.get("receive_time"))
        metrics = {}
        for m in self._expand(raw.get("metrics")):
            metrics[f"{m.get('category')}.{m.get('name')}"] = m.get("value")

        changes = []
        for event in self._expand(raw.get("resource_events")):
            if event.get("status") == "skipped":
                continue
            ref = f"{event.get('resource_type')}[{event.get('resource_title')}]"
            changes.append(ResourceChange(resource_type=ref,
                                          resource_title=event.get("resource_title") or "",
                                          status=event.get("status") or ""))
            containing = event.get("containing_class")
            if containing and containing != "Class":
                changes.append(ResourceChange(resource_type=f"Class[{containing}]",
                                              resource_title=containing,
                                              status=event.get("status") or ""))

        return ReportSnapshot(
            certname=raw.get("certname", ""),
            timestamp=timestamp,
            status=NodeStatus.from_puppet(raw.get("status"), raw.get("noop") or False),
            metrics=metrics,
            resource_changes=tuple(changes),
        )

    def _expand(self, field):
        """Return the rows of an expandable report field, following href when not inlined."""
        if not field:
            return []
        if isinstance(field, list):
            return field
        if field.get("data") is not None:
            return field["data"]
        href = field.get("href")
        if href:
            return self.client.get(urlparse(href).path)
        return []
