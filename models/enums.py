"""Enums for severities, operators, condition types and node status."""
from enum import Enum


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    EMERGENCY = "emergency"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class ConditionOperator(str, Enum):
    EQ = "="
    NE = "!="
    MATCH = "~"
    NOT_MATCH = "!~"
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    IN = "in"
    NOT_IN = "not_in"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"


class ConditionType(str, Enum):
    NODE_STATUS = "NodeStatus"
    NODE_FACT = "NodeFact"
    REPORT_METRIC = "ReportMetric"
    ENVIRONMENT_FILTER = "EnvironmentFilter"
    GROUP_FILTER = "GroupFilter"
    NODE_COUNT_THRESHOLD = "NodeCountThreshold"
    TIME_WINDOW_FILTER = "TimeWindowFilter"
    LAST_REPORT_TIME = "LastReportTime"
    CONSECUTIVE_FAILURES = "ConsecutiveFailures"
    CONSECUTIVE_CHANGES = "ConsecutiveChanges"
    CLASS_CHANGE_FREQUENCY = "ClassChangeFrequency"


class DataType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"


class ValueKind(str, Enum):
    STRING = "string"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    SET = "set"


class NodeStatus(str, Enum):
    FAILED = "failed"
    SUCCESS = "success"
    NOOP = "noop"
    UNKNOWN = "unknown"

    @classmethod
    def from_puppet(cls, status, noop=False):
        """Map a Puppet report status ("changed", "unchanged", ...) to a NodeStatus."""
        if status is None:
            return cls.UNKNOWN
        status = str(status).lower()
        if status == "failed":
            return cls.FAILED
        if noop or status == "noop":
            return cls.NOOP
        if status in ("changed", "unchanged", "success"):
            return cls.SUCCESS
        return cls.UNKNOWN


# Aliases accepted when decoding rules written for the dashboard API
OPERATOR_ALIASES = {
    "==": ConditionOperator.EQ,
    "eq": ConditionOperator.EQ,
    "ne": ConditionOperator.NE,
    "gt": ConditionOperator.GT,
    "gte": ConditionOperator.GTE,
    "lt": ConditionOperator.LT,
    "lte": ConditionOperator.LTE,
    "regex": ConditionOperator.MATCH,
    "not_regex": ConditionOperator.NOT_MATCH,
}

LOGICAL_ALIASES = {
    "and": LogicalOperator.AND,
    "all": LogicalOperator.AND,
    "or": LogicalOperator.OR,
    "any": LogicalOperator.OR,
}
