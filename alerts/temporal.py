"""Streak and window analysis over a node's report history.

All functions are pure: they take report snapshots, an evaluation-time `now`
and a window, and return a number. The Comparator Engine compares that number
against the condition's threshold.
"""
import math
from datetime import timedelta, timezone

from alerts.errors import EvaluationError
from models.enums import NodeStatus

CHANGED_METRIC = "resources.changed"
FAILED_METRIC = "resources.failed"
TOTAL_METRIC = "resources.total"


def ensure_utc(dt):
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def is_failure(report):
    return report.status == NodeStatus.FAILED


def has_changes(report):
    changed = report.metrics.get(CHANGED_METRIC)
    if changed is None or isinstance(changed, bool):
        return False
    try:
        return float(changed) > 0
    except (TypeError, ValueError):
        return False


def reports_in_window(reports, now, within_hours):
    """Reports no older than `within_hours`, newest first."""
    cutoff = ensure_utc(now) - timedelta(hours=within_hours)
    recent = [r for r in reports if ensure_utc(r.timestamp) >= cutoff]
    return sorted(recent, key=lambda r: ensure_utc(r.timestamp), reverse=True)


def streak(reports, now, within_hours, predicate):
    """Count the most recent in-window reports in a row that satisfy `predicate`.

    The window is applied before the walk. Reports sharing a timestamp are
    ordered with non-matching ones first, so the result never depends on the
    order of the input list.
    """
    cutoff = ensure_utc(now) - timedelta(hours=within_hours)
    ordered = sorted(
        (r for r in reports if ensure_utc(r.timestamp) >= cutoff),
        key=lambda r: (ensure_utc(r.timestamp), not predicate(r)),
        reverse=True,
    )
    count = 0
    for report in ordered:
        if not predicate(report):
            break
        count += 1
    return count


def consecutive_failures(reports, now, within_hours):
    return streak(reports, now, within_hours, is_failure)


def consecutive_changes(reports, now, within_hours):
    return streak(reports, now, within_hours, has_changes)


def class_reference(class_name):
    """Puppet reference form of a class name: apache::server -> Apache::Server."""
    name = class_name.strip()
    if name.startswith("Class[") and name.endswith("]"):
        name = name[len("Class["):-1]
    return "::".join(part[:1].upper() + part[1:] for part in name.split("::"))


def class_change_frequency(reports, now, within_hours, class_name):
    """Number of in-window reports with at least one change touching `class_name`."""
    needle = class_reference(class_name)
    frequency = 0
    for report in reports_in_window(reports, now, within_hours):
        if any(needle in change.resource_type for change in report.resource_changes):
            frequency += 1
    return frequency


def failure_percentage(metrics):
    """Failed resources as a percentage of total; 0 when there are no resources."""
    total = float(metrics.get(TOTAL_METRIC) or 0)
    if total <= 0:
        return 0.0
    failed = float(metrics.get(FAILED_METRIC) or 0)
    return failed * 100.0 / total


def report_age(node, now):
    """Time since the node's last report; None if it never reported."""
    if not node.last_report_known:
        raise EvaluationError("last report time is unknown", certname=node.certname)
    if node.last_report_timestamp is None:
        return None
    return ensure_utc(now) - ensure_utc(node.last_report_timestamp)


def report_age_minutes(node, now):
    age = report_age(node, now)
    return math.inf if age is None else age.total_seconds() / 60.0


def report_age_hours(node, now):
    age = report_age(node, now)
    return math.inf if age is None else age.total_seconds() / 3600.0


def latest_report(reports):
    if not reports:
        return None
    return max(reports, key=lambda r: ensure_utc(r.timestamp))
