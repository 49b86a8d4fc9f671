"""Alert evaluation orchestrator."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

from alerts.debounce import DebounceTracker
from alerts.errors import EvaluationError, OrchestratorError
from alerts.evaluator import RuleEvaluator
from alerts.temporal import ensure_utc
from alerts.triggers import generate_triggers, node_count_gate
from models.alerts import AlertRule
from models.enums import Severity
from utils.cache import TTLCache

logger = logging.getLogger("nodealert.alerts.engine")


@dataclass
class NodeResult:
    certname: str
    matched: bool = False
    error: Optional[EvaluationError] = None
    skipped: Optional[OrchestratorError] = None
    elapsed_ms: float = 0.0


@dataclass
class RuleResult:
    rule: AlertRule
    node_results: list = field(default_factory=list)
    triggers: list = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def matched(self):
        return [r.certname for r in self.node_results if r.matched]

    @property
    def evaluated(self):
        return [r.certname for r in self.node_results if r.skipped is None]

    @property
    def errors(self):
        return [r.error for r in self.node_results if r.error is not None]

    @property
    def skipped(self):
        return [r.skipped for r in self.node_results if r.skipped is not None]

    @property
    def threshold_passed(self):
        return node_count_gate(self.rule, len(self.matched))


class AlertEngine:
    """Runs evaluation passes: fetch nodes, evaluate per node in a worker pool,
    gate and debounce the matches, and hand triggers to the channels."""

    def __init__(self, node_source, group_source=None, channels=None, tracker=None,
                 max_workers=8, pass_timeout=300, cache_ttl=600, cache=None):
        self.node_source = node_source
        self.group_source = group_source
        self.channels = channels or []
        self.tracker = tracker or DebounceTracker()
        self.max_workers = max(1, int(max_workers))
        self.pass_timeout = pass_timeout
        self.cache = cache if cache is not None else TTLCache(default_ttl=cache_ttl)

    @classmethod
    def from_config(cls, config, node_source, group_source=None, channels=None):
        cfg = config.get("evaluation", {})
        return cls(
            node_source,
            group_source=group_source,
            channels=channels,
            max_workers=cfg.get("max_workers", 8),
            pass_timeout=cfg.get("pass_timeout", 300),
            cache_ttl=cfg.get("cache_ttl", 600),
        )

    # ── passes ─────────────────────────────────────────

    def list_nodes(self):
        try:
            return list(self.node_source.list_nodes())
        except Exception as e:
            raise OrchestratorError(f"node source unavailable: {e}") from e

    def run_rule(self, rule, now=None, nodes=None, cancel=None, deadline=None, executor=None):
        """Evaluate one rule against every node. No debounce state, no dispatch."""
        now = ensure_utc(now or datetime.now(timezone.utc))
        if nodes is None:
            nodes = self.list_nodes()
        start = time.monotonic()
        evaluator = RuleEvaluator(rule)
        results = self._evaluate_nodes(evaluator, nodes, now, cancel, deadline, executor)
        return RuleResult(rule=rule, node_results=results,
                          elapsed_ms=(time.monotonic() - start) * 1000)

    def evaluate_rule(self, rule, now=None, nodes=None, cancel=None, deadline=None, executor=None):
        """One pass of one rule, including debounce counters and cooldowns."""
        now = ensure_utc(now or datetime.now(timezone.utc))
        result = self.run_rule(rule, now, nodes, cancel, deadline, executor)
        streaks = self.tracker.record_pass(rule.id, result.matched, evaluated=result.evaluated)
        triggers = generate_triggers(rule, result.matched, now, streaks)
        result.triggers = self.tracker.apply_cooldown(rule, triggers, now)
        logger.info(
            f"Rule {rule.id}: {len(result.matched)}/{len(result.node_results)} nodes matched, "
            f"{len(result.errors)} errors, {len(result.skipped)} skipped, "
            f"{len(result.triggers)} triggers ({result.elapsed_ms:.0f}ms)"
        )
        return result

    def check(self, rules, now=None, cancel=None):
        """Main entry point: evaluate all enabled rules and dispatch their triggers.

        All rules share one worker pool and one `pass_timeout` deadline.
        """
        now = ensure_utc(now or datetime.now(timezone.utc))
        rules = [r for r in rules if r.enabled]
        if not rules:
            return []
        deadline = time.monotonic() + self.pass_timeout
        nodes = self.list_nodes()
        triggered = []
        executor = self._executor()
        try:
            for rule in rules:
                if cancel is not None and cancel.is_set():
                    logger.warning("Evaluation pass cancelled")
                    break
                result = self.evaluate_rule(rule, now, nodes, cancel, deadline, executor)
                for trigger in result.triggers:
                    self._dispatch(trigger)
                triggered.extend(result.triggers)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return triggered

    def test_rule(self, rule, now=None, nodes=None):
        """Dry run: same code path, no debounce state, no dispatch, per-node timings kept."""
        now = ensure_utc(now or datetime.now(timezone.utc))
        result = self.run_rule(rule, now, nodes)
        ready = {certname: max(1, int(rule.debounce_count)) for certname in result.matched}
        result.triggers = generate_triggers(rule, result.matched, now, ready)
        return result

    # ── workers ────────────────────────────────────────

    def _executor(self):
        return ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="nodealert")

    def _evaluate_nodes(self, evaluator, nodes, now, cancel, deadline=None, executor=None):
        nodes = list(nodes)
        if not nodes:
            return []
        if deadline is None:
            deadline = time.monotonic() + self.pass_timeout
        own_executor = executor is None
        if own_executor:
            executor = self._executor()
        try:
            futures = []
            if time.monotonic() < deadline:
                futures = [executor.submit(self._evaluate_node, evaluator, node, now, cancel)
                           for node in nodes]
                wait(futures, timeout=max(0.0, deadline - time.monotonic()))
            results = []
            for i, node in enumerate(nodes):
                future = futures[i] if futures else None
                if future is not None and future.done() and not future.cancelled():
                    results.append(future.result())
                    continue
                if future is not None:
                    future.cancel()
                err = OrchestratorError(
                    f"not evaluated within pass timeout of {self.pass_timeout}s",
                    certname=node.certname)
                logger.error(f"Skipping {node.certname}: {err.message}")
                results.append(NodeResult(certname=node.certname, skipped=err))
            return results
        finally:
            if own_executor:
                executor.shutdown(wait=False, cancel_futures=True)

    def _evaluate_node(self, evaluator, node, now, cancel):
        start = time.monotonic()
        if cancel is not None and cancel.is_set():
            return NodeResult(certname=node.certname,
                              skipped=OrchestratorError("evaluation pass cancelled", node.certname))
        try:
            node, reports, latest = self._load_node_data(node, evaluator.requirements)
        except Exception as e:
            if isinstance(e, OrchestratorError):
                err = e
            else:
                err = OrchestratorError(f"failed to fetch node data: {e}", certname=node.certname)
            logger.error(f"Skipping {node.certname} for rule {evaluator.rule.id}: {err.message}")
            return NodeResult(certname=node.certname, skipped=err,
                              elapsed_ms=(time.monotonic() - start) * 1000)

        matched, error = evaluator.evaluate(node, reports, now, latest)
        if error is not None:
            logger.warning(f"Rule {evaluator.rule.id} condition {error.condition_id} "
                           f"on {node.certname}: {error.message}")
        return NodeResult(certname=node.certname, matched=matched, error=error,
                          elapsed_ms=(time.monotonic() - start) * 1000)

    def _load_node_data(self, node, req):
        """Fetch only what the rule needs, through the shared cache."""
        certname = node.certname
        if req.needs_facts and node.facts is None:
            facts = self.cache.get_or_load(
                ("facts", certname), lambda: self.node_source.get_node_facts(certname))
            node = replace(node, facts=facts)
        if req.needs_groups:
            if self.group_source is None:
                raise OrchestratorError("group membership unavailable: no group source configured",
                                        certname=certname)
            groups = self.cache.get_or_load(
                ("groups", certname), lambda: self.group_source.get_node_groups(certname))
            node = replace(node, group_ids=frozenset(node.group_ids) | frozenset(groups))

        reports = ()
        if req.report_window_hours:
            hours = req.report_window_hours
            reports = self.cache.get_or_load(
                ("reports", certname, hours),
                lambda: tuple(self.node_source.get_node_reports(certname, hours)))
        latest = None
        if req.needs_latest_report:
            latest = self.cache.get_or_load(
                ("latest", certname), lambda: self.node_source.get_latest_report(certname))
        return node, reports, latest

    # ── output ─────────────────────────────────────────

    def format_trigger_summary(self, triggers):
        """Format triggers for display."""
        if not triggers:
            return "All clear - no alerts triggered."
        icons = {Severity.EMERGENCY: "!!!!", Severity.CRITICAL: "!!!",
                 Severity.WARNING: "!!", Severity.INFO: "i"}
        lines = []
        for t in triggers:
            lines.append(f"[{icons.get(t.severity, '?')}] [{t.severity.value.upper()}] "
                         f"{t.rule_name or t.alert_rule_id}: {t.certname}")
        return "\n".join(lines)

    def _dispatch(self, trigger):
        for channel in self.channels:
            try:
                channel.send(trigger)
            except Exception as e:
                logger.warning(f"Channel dispatch error: {e}")
