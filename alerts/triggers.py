"""Turn a pass's matched nodes into AlertTrigger records."""
import logging
from datetime import datetime, timezone

from alerts.comparators import compare_numeric
from alerts.errors import EvaluationError
from models.alerts import AlertTrigger

logger = logging.getLogger("nodealert.alerts.triggers")


def node_count_gate(rule, matched_count):
    """True if the rule's NodeCountThreshold (if any) holds for the match set size."""
    threshold = rule.node_count_threshold
    if threshold is None:
        return True
    try:
        return compare_numeric(threshold.operator, matched_count, threshold.value.count)
    except EvaluationError as e:
        logger.warning(f"Rule {rule.id}: node count threshold unusable, suppressing triggers: {e}")
        return False


def generate_triggers(rule, matched, now=None, streaks=None):
    """Build triggers for matched certnames.

    `streaks` maps certname to the number of consecutive passes the node has
    matched, including this one. It is owned by the caller; nodes missing from
    it count as matching for the first time.
    """
    matched = sorted(set(matched))
    if not node_count_gate(rule, len(matched)):
        logger.debug(f"Rule {rule.id}: {len(matched)} matched nodes fail the node count threshold")
        return []

    now = now or datetime.now(timezone.utc)
    streaks = streaks or {}
    triggers = []
    for certname in matched:
        count = streaks.get(certname, 1)
        if count < rule.debounce_count:
            continue
        triggers.append(AlertTrigger(
            alert_rule_id=rule.id,
            rule_name=rule.name,
            certname=certname,
            severity=rule.severity,
            triggered_at=now,
            triggered_count=count,
        ))
    return triggers
