"""Data models."""
from models.enums import (
    Severity, LogicalOperator, ConditionOperator, ConditionType, DataType, ValueKind, NodeStatus,
)
from models.nodes import NodeSnapshot, ReportSnapshot, ResourceChange
from models.alerts import (
    AlertRule, Condition, AlertTrigger, StatusSet, FactCompare, MetricCompare, EnvironmentMatch,
    GroupMatch, NodeCount, TimeWindow, ReportAge, ReportStreak, ClassChanges,
)
