"""Tests for node count gating, trigger generation, debounce and cooldown."""
import pytest
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timedelta, timezone

from alerts.conditions import parse_rule
from alerts.debounce import DebounceTracker
from alerts.triggers import generate_triggers, node_count_gate
from models.enums import Severity

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _rule(threshold=None, **kwargs):
    data = {"id": "fleet", "name": "Fleet failures", "severity": "critical",
            "conditions": [{"type": "NodeStatus", "value": ["failed"]}]}
    if threshold is not None:
        data["node_count_threshold"] = threshold
    data.update(kwargs)
    return parse_rule(data)


# ── Node count gate ────────────────────────────────────

def test_gate_without_threshold():
    assert node_count_gate(_rule(), 0) is True


def test_threshold_not_met_suppresses_all():
    rule = _rule({"operator": ">", "count": 5})
    assert generate_triggers(rule, ["a", "b", "c"], NOW) == []


def test_threshold_met_emits_every_node():
    rule = _rule({"operator": ">", "count": 2})
    triggers = generate_triggers(rule, ["c", "a", "b"], NOW)
    assert [t.certname for t in triggers] == ["a", "b", "c"]
    assert all(t.severity == Severity.CRITICAL for t in triggers)
    assert all(t.triggered_at == NOW for t in triggers)


def test_unusable_threshold_suppresses():
    rule = _rule({"operator": ">", "count": "lots"})
    assert node_count_gate(rule, 10) is False


def test_no_matches_no_triggers():
    assert generate_triggers(_rule(), [], NOW) == []


def test_trigger_fields():
    trigger = generate_triggers(_rule(), ["web01"], NOW)[0]
    assert trigger.alert_rule_id == "fleet"
    assert trigger.rule_name == "Fleet failures"
    assert trigger.triggered_count == 1
    data = trigger.to_dict()
    assert data["severity"] == "critical"
    assert data["triggered_at"] == NOW.isoformat()
    assert len(data["id"]) == 32


# ── Debounce ───────────────────────────────────────────

def test_debounce_requires_consecutive_passes():
    rule = _rule(debounce_count=3)
    tracker = DebounceTracker()
    emitted = []
    for _ in range(3):
        streaks = tracker.record_pass(rule.id, ["web01"], evaluated=["web01"])
        emitted.append(generate_triggers(rule, ["web01"], NOW, streaks))
    assert [len(t) for t in emitted] == [0, 0, 1]
    assert emitted[2][0].triggered_count == 3


def test_debounce_resets_on_miss():
    tracker = DebounceTracker()
    tracker.record_pass("r", ["web01"], evaluated=["web01"])
    tracker.record_pass("r", ["web01"], evaluated=["web01"])
    tracker.record_pass("r", [], evaluated=["web01"])
    assert tracker.streak("r", "web01") == 0
    assert tracker.record_pass("r", ["web01"], evaluated=["web01"]) == {"web01": 1}


def test_skipped_node_keeps_streak():
    tracker = DebounceTracker()
    tracker.record_pass("r", ["web01"], evaluated=["web01"])
    tracker.record_pass("r", [], evaluated=[])
    assert tracker.streak("r", "web01") == 1


def test_streaks_are_per_rule():
    tracker = DebounceTracker()
    tracker.record_pass("a", ["web01"])
    tracker.record_pass("b", [])
    assert tracker.streak("a", "web01") == 1
    tracker.reset("a")
    assert tracker.streak("a", "web01") == 0


# ── Cooldown ───────────────────────────────────────────

def test_cooldown_suppresses_repeat():
    rule = _rule(cooldown_minutes=60)
    tracker = DebounceTracker()
    first = tracker.apply_cooldown(rule, generate_triggers(rule, ["web01"], NOW), NOW)
    assert len(first) == 1

    later = NOW + timedelta(minutes=30)
    assert tracker.apply_cooldown(rule, generate_triggers(rule, ["web01"], later), later) == []

    much_later = NOW + timedelta(minutes=61)
    assert len(tracker.apply_cooldown(rule, generate_triggers(rule, ["web01"], much_later),
                                      much_later)) == 1


def test_no_cooldown_always_emits():
    rule = _rule()
    tracker = DebounceTracker()
    for _ in range(3):
        assert len(tracker.apply_cooldown(rule, generate_triggers(rule, ["web01"], NOW), NOW)) == 1
