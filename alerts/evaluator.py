"""Per-node rule evaluation: combine a rule's conditions with AND/OR."""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from alerts import temporal
from alerts.comparators import compare_numeric, compare_set, compare_string, compare_typed, coerce, to_number
from alerts.conditions import DERIVED_METRICS
from alerts.errors import EvaluationError
from models.enums import ConditionOperator as Op, ConditionType as CT, LogicalOperator

logger = logging.getLogger("nodealert.alerts.evaluator")

REPORT_HISTORY_TYPES = {CT.CONSECUTIVE_FAILURES, CT.CONSECUTIVE_CHANGES, CT.CLASS_CHANGE_FREQUENCY}


@dataclass(frozen=True)
class RuleRequirements:
    """Which node data a rule needs, so the orchestrator fetches only that."""
    needs_facts: bool = False
    needs_groups: bool = False
    needs_latest_report: bool = False
    report_window_hours: Optional[float] = None


@dataclass(frozen=True)
class NodeContext:
    node: object
    reports: tuple
    latest_report: object
    now: datetime


def per_node_conditions(rule):
    """Enabled conditions that apply to a single node (everything but NodeCountThreshold)."""
    return [c for c in rule.enabled_conditions
            if c.condition_type != CT.NODE_COUNT_THRESHOLD]


def requirements(rule):
    needs_facts = needs_groups = needs_latest = False
    window = None
    for c in per_node_conditions(rule):
        ctype = c.condition_type
        if ctype == CT.NODE_FACT:
            needs_facts = True
        elif ctype == CT.GROUP_FILTER:
            needs_groups = True
        elif ctype == CT.REPORT_METRIC:
            needs_latest = True
        elif ctype in REPORT_HISTORY_TYPES:
            try:
                hours = to_number(c.value.within_hours)
            except EvaluationError:
                continue
            window = hours if window is None else max(window, hours)
    return RuleRequirements(needs_facts, needs_groups, needs_latest, window)


class RuleEvaluator:
    """Evaluates one rule against any number of nodes during a single pass.

    Regex operands are compiled once here and shared by every node, so the
    object is safe to use from several worker threads.
    """

    def __init__(self, rule):
        self.rule = rule
        self.conditions = per_node_conditions(rule)
        self.requirements = requirements(rule)
        self._patterns = {}
        for c in self.conditions:
            source = self._regex_source(c)
            if source is None:
                continue
            try:
                self._patterns[c.id] = re.compile(source)
            except (re.error, TypeError) as e:
                self._patterns[c.id] = EvaluationError(f"invalid regex {source!r}: {e}",
                                                       condition_id=c.id)
        self._handlers = {
            CT.NODE_STATUS: self._node_status,
            CT.NODE_FACT: self._node_fact,
            CT.REPORT_METRIC: self._report_metric,
            CT.ENVIRONMENT_FILTER: self._environment,
            CT.GROUP_FILTER: self._group,
            CT.TIME_WINDOW_FILTER: self._time_window,
            CT.LAST_REPORT_TIME: self._last_report_time,
            CT.CONSECUTIVE_FAILURES: self._consecutive_failures,
            CT.CONSECUTIVE_CHANGES: self._consecutive_changes,
            CT.CLASS_CHANGE_FREQUENCY: self._class_change_frequency,
        }

    @staticmethod
    def _regex_source(condition):
        if condition.operator not in (Op.MATCH, Op.NOT_MATCH):
            return None
        if condition.condition_type == CT.NODE_FACT:
            return condition.value.value
        if condition.condition_type == CT.ENVIRONMENT_FILTER:
            return condition.value.value
        return None

    # ── entry points ───────────────────────────────────

    def evaluate(self, node, reports=(), now=None, latest_report=None):
        """Return (matched, error). The error is the first condition error that was reached."""
        if not self.conditions:
            return False, None
        now = temporal.ensure_utc(now or datetime.now(timezone.utc))
        reports = tuple(reports or ())
        if latest_report is None:
            latest_report = temporal.latest_report(reports)
        ctx = NodeContext(node=node, reports=reports, latest_report=latest_report, now=now)

        if self.rule.operator == LogicalOperator.AND:
            for condition in self.conditions:
                try:
                    if not self.evaluate_condition(condition, ctx):
                        return False, None
                except EvaluationError as e:
                    return False, e
            return True, None

        first_error = None
        for condition in self.conditions:
            try:
                if self.evaluate_condition(condition, ctx):
                    return True, first_error
            except EvaluationError as e:
                if first_error is None:
                    first_error = e
        return False, first_error

    def evaluate_condition(self, condition, ctx):
        """Evaluate one condition; raises EvaluationError tagged with node and condition."""
        try:
            handler = self._handlers.get(condition.condition_type)
            if handler is None:
                raise EvaluationError(f"{condition.condition_type.value} is not a per-node condition")
            return handler(condition, ctx)
        except EvaluationError as e:
            e.condition_id = e.condition_id or condition.id
            e.certname = e.certname or ctx.node.certname
            raise
        except (TypeError, ValueError, AttributeError) as e:
            raise EvaluationError(f"malformed condition: {e}", condition_id=condition.id,
                                  certname=ctx.node.certname) from e

    def _pattern(self, condition):
        pattern = self._patterns.get(condition.id)
        if isinstance(pattern, EvaluationError):
            raise EvaluationError(pattern.message, condition_id=condition.id)
        return pattern

    # ── handlers ───────────────────────────────────────

    def _node_status(self, condition, ctx):
        statuses = {str(s).lower() for s in condition.value.statuses}
        member = ctx.node.status.value in statuses
        if condition.operator in (Op.EQ, Op.IN):
            return member
        if condition.operator in (Op.NE, Op.NOT_IN):
            return not member
        raise EvaluationError(f"operator {condition.operator.value!r} not supported for NodeStatus")

    def _node_fact(self, condition, ctx):
        facts = ctx.node.facts
        if facts is None:
            raise EvaluationError("facts were not loaded for node")
        path = condition.value.fact_path
        present = path in facts or any(k.startswith(path + ".") for k in facts)
        if condition.operator == Op.EXISTS:
            return present
        if condition.operator == Op.NOT_EXISTS:
            return not present
        if path not in facts:
            raise EvaluationError(f"fact {path!r} is not present")
        data_type = condition.value.data_type
        actual = coerce(facts[path], data_type)
        return compare_typed(condition.operator, actual, condition.value.value, data_type,
                             self._pattern(condition))

    def _report_metric(self, condition, ctx):
        report = ctx.latest_report
        metric = condition.value.metric
        if metric in DERIVED_METRICS:
            if report is None:
                raise EvaluationError("node has no report")
            if condition.operator in (Op.EXISTS, Op.NOT_EXISTS):
                return condition.operator == Op.EXISTS
            # a ratio, so an integer data_type only constrains the threshold
            return compare_numeric(condition.operator, temporal.failure_percentage(report.metrics),
                                   condition.value.value)

        present = report is not None and metric in report.metrics
        if condition.operator == Op.EXISTS:
            return present
        if condition.operator == Op.NOT_EXISTS:
            return not present
        if report is None:
            raise EvaluationError("node has no report")
        if not present:
            raise EvaluationError(f"metric {metric!r} is not present in latest report")
        return compare_typed(condition.operator, report.metrics[metric],
                             condition.value.value, condition.value.data_type)

    def _environment(self, condition, ctx):
        if ctx.node.environment is None:
            raise EvaluationError("node has no environment")
        return compare_string(condition.operator, ctx.node.environment, condition.value.value,
                              self._pattern(condition))

    def _group(self, condition, ctx):
        return compare_set(condition.operator, ctx.node.group_ids, condition.value.group_ids)

    def _time_window(self, condition, ctx):
        age = temporal.report_age_minutes(ctx.node, ctx.now)
        return compare_numeric(condition.operator, age, condition.value.minutes)

    def _last_report_time(self, condition, ctx):
        age = temporal.report_age_hours(ctx.node, ctx.now)
        return compare_numeric(condition.operator, age, condition.value.hours)

    def _consecutive_failures(self, condition, ctx):
        hours = to_number(condition.value.within_hours)
        count = temporal.consecutive_failures(ctx.reports, ctx.now, hours)
        return compare_numeric(condition.operator, count, condition.value.count)

    def _consecutive_changes(self, condition, ctx):
        hours = to_number(condition.value.within_hours)
        count = temporal.consecutive_changes(ctx.reports, ctx.now, hours)
        return compare_numeric(condition.operator, count, condition.value.count)

    def _class_change_frequency(self, condition, ctx):
        if not condition.value.class_name:
            raise EvaluationError("class_name is empty")
        hours = to_number(condition.value.within_hours)
        frequency = temporal.class_change_frequency(ctx.reports, ctx.now, hours,
                                                    str(condition.value.class_name))
        return compare_numeric(condition.operator, frequency, condition.value.change_count)


def evaluate_rule(rule, node, reports=(), now=None, latest_report=None):
    """Evaluate a rule for one node. Returns (matched, EvaluationError or None)."""
    return RuleEvaluator(rule).evaluate(node, reports, now, latest_report)
