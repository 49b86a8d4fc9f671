"""Dataclasses for alert rules, typed condition payloads and triggers."""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from models.enums import (
    ConditionOperator, ConditionType, DataType, LogicalOperator, Severity,
)


# ── Condition payloads (one per ConditionType) ─────────

@dataclass(frozen=True)
class StatusSet:
    statuses: tuple = ()


@dataclass(frozen=True)
class FactCompare:
    fact_path: Optional[str] = None
    data_type: DataType = DataType.STRING
    value: Any = None


@dataclass(frozen=True)
class MetricCompare:
    metric: Optional[str] = None
    data_type: DataType = DataType.FLOAT
    value: Any = None


@dataclass(frozen=True)
class EnvironmentMatch:
    value: Any = None


@dataclass(frozen=True)
class GroupMatch:
    group_ids: tuple = ()


@dataclass(frozen=True)
class NodeCount:
    count: Any = None


@dataclass(frozen=True)
class TimeWindow:
    minutes: Any = None


@dataclass(frozen=True)
class ReportAge:
    hours: Any = None


@dataclass(frozen=True)
class ReportStreak:
    count: Any = None
    within_hours: Any = None


@dataclass(frozen=True)
class ClassChanges:
    class_name: Optional[str] = None
    change_count: Any = None
    within_hours: Any = None


PAYLOAD_TYPES = {
    ConditionType.NODE_STATUS: StatusSet,
    ConditionType.NODE_FACT: FactCompare,
    ConditionType.REPORT_METRIC: MetricCompare,
    ConditionType.ENVIRONMENT_FILTER: EnvironmentMatch,
    ConditionType.GROUP_FILTER: GroupMatch,
    ConditionType.NODE_COUNT_THRESHOLD: NodeCount,
    ConditionType.TIME_WINDOW_FILTER: TimeWindow,
    ConditionType.LAST_REPORT_TIME: ReportAge,
    ConditionType.CONSECUTIVE_FAILURES: ReportStreak,
    ConditionType.CONSECUTIVE_CHANGES: ReportStreak,
    ConditionType.CLASS_CHANGE_FREQUENCY: ClassChanges,
}


# ── Rules ──────────────────────────────────────────────

@dataclass(frozen=True)
class Condition:
    id: str
    condition_type: ConditionType
    operator: ConditionOperator
    value: Any
    enabled: bool = True


@dataclass(frozen=True)
class AlertRule:
    id: str
    name: str = ""
    enabled: bool = True
    severity: Severity = Severity.WARNING
    conditions: tuple = ()
    operator: LogicalOperator = LogicalOperator.AND
    debounce_count: int = 1
    cooldown_minutes: int = 0
    description: str = ""

    @property
    def enabled_conditions(self):
        return [c for c in self.conditions if c.enabled]

    @property
    def node_count_threshold(self):
        """First enabled NodeCountThreshold condition, applied to the whole match set."""
        for c in self.enabled_conditions:
            if c.condition_type == ConditionType.NODE_COUNT_THRESHOLD:
                return c
        return None


@dataclass
class AlertTrigger:
    alert_rule_id: str = ""
    certname: str = ""
    severity: Severity = Severity.WARNING
    triggered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    triggered_count: int = 1
    rule_name: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self):
        return {
            "id": self.id,
            "alert_rule_id": self.alert_rule_id,
            "rule_name": self.rule_name,
            "certname": self.certname,
            "severity": self.severity.value,
            "triggered_at": self.triggered_at.isoformat(),
            "triggered_count": self.triggered_count,
        }
