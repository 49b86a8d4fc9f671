"""Decoding rules from plain dicts and validating them at load time."""
import logging
import re

from alerts.comparators import as_list, coerce, to_bool
from alerts.errors import EvaluationError, ValidationError
from models.alerts import (
    AlertRule, ClassChanges, Condition, EnvironmentMatch, FactCompare, GroupMatch, MetricCompare,
    NodeCount, ReportAge, ReportStreak, StatusSet, TimeWindow,
)
from models.enums import (
    LOGICAL_ALIASES, OPERATOR_ALIASES, ConditionOperator as Op, ConditionType as CT, DataType,
    LogicalOperator, NodeStatus, Severity, ValueKind,
)

logger = logging.getLogger("nodealert.alerts.conditions")

KIND_OPERATORS = {
    ValueKind.STRING: {Op.EQ, Op.NE, Op.MATCH, Op.NOT_MATCH, Op.IN, Op.NOT_IN,
                       Op.EXISTS, Op.NOT_EXISTS, Op.CONTAINS, Op.NOT_CONTAINS},
    ValueKind.NUMERIC: {Op.EQ, Op.NE, Op.GT, Op.GTE, Op.LT, Op.LTE, Op.IN, Op.NOT_IN,
                        Op.EXISTS, Op.NOT_EXISTS},
    ValueKind.BOOLEAN: {Op.EQ, Op.NE},
    ValueKind.SET: {Op.IN, Op.NOT_IN, Op.CONTAINS, Op.NOT_CONTAINS},
}

_COMPARE = {Op.EQ, Op.NE, Op.GT, Op.GTE, Op.LT, Op.LTE}
_AGE = {Op.GT, Op.GTE, Op.LT, Op.LTE}

# Operators per condition type. None means "derived from the declared data_type".
TYPE_OPERATORS = {
    CT.NODE_STATUS: {Op.EQ, Op.NE, Op.IN, Op.NOT_IN},
    CT.NODE_FACT: None,
    CT.REPORT_METRIC: KIND_OPERATORS[ValueKind.NUMERIC],
    CT.ENVIRONMENT_FILTER: {Op.EQ, Op.NE, Op.MATCH, Op.NOT_MATCH, Op.IN, Op.NOT_IN},
    CT.GROUP_FILTER: KIND_OPERATORS[ValueKind.SET],
    CT.NODE_COUNT_THRESHOLD: {Op.EQ, Op.GT, Op.GTE, Op.LT, Op.LTE},
    CT.TIME_WINDOW_FILTER: _AGE,
    CT.LAST_REPORT_TIME: _AGE,
    CT.CONSECUTIVE_FAILURES: _COMPARE,
    CT.CONSECUTIVE_CHANGES: _COMPARE,
    CT.CLASS_CHANGE_FREQUENCY: _COMPARE,
}

# Operator used when a condition omits one
DEFAULT_OPERATORS = {
    CT.NODE_STATUS: Op.IN,
    CT.ENVIRONMENT_FILTER: Op.IN,
    CT.GROUP_FILTER: Op.IN,
    CT.NODE_COUNT_THRESHOLD: Op.GTE,
    CT.TIME_WINDOW_FILTER: Op.LTE,
    CT.LAST_REPORT_TIME: Op.GT,
    CT.CONSECUTIVE_FAILURES: Op.GTE,
    CT.CONSECUTIVE_CHANGES: Op.GTE,
    CT.CLASS_CHANGE_FREQUENCY: Op.GTE,
}

DERIVED_METRICS = {"FailurePercentage", "failure_percentage"}

_DATA_TYPE_KIND = {
    DataType.STRING: ValueKind.STRING,
    DataType.INTEGER: ValueKind.NUMERIC,
    DataType.FLOAT: ValueKind.NUMERIC,
    DataType.BOOLEAN: ValueKind.BOOLEAN,
}


def legal_operators(condition):
    allowed = TYPE_OPERATORS[condition.condition_type]
    if allowed is None:
        return KIND_OPERATORS[_DATA_TYPE_KIND[condition.value.data_type]]
    return allowed


# ── Decoding ───────────────────────────────────────────

def parse_operator(raw):
    if isinstance(raw, Op):
        return raw
    text = str(raw).strip()
    if text in OPERATOR_ALIASES:
        return OPERATOR_ALIASES[text]
    try:
        return Op(text.lower() if text.isalpha() or "_" in text else text)
    except ValueError:
        raise ValidationError(f"unknown operator {raw!r}", field="operator") from None


def parse_logical(raw):
    if isinstance(raw, LogicalOperator):
        return raw
    op = LOGICAL_ALIASES.get(str(raw).strip().lower())
    if op is None:
        raise ValidationError(f"unknown logical operator {raw!r}", field="operator")
    return op


def parse_severity(raw):
    if isinstance(raw, Severity):
        return raw
    try:
        return Severity(str(raw).strip().lower())
    except ValueError:
        raise ValidationError(f"unknown severity {raw!r}", field="severity") from None


def parse_flag(raw, field="enabled"):
    """Decode a boolean switch; YAML and JSON may carry it as a word or 0/1."""
    if isinstance(raw, int) and not isinstance(raw, bool) and raw in (0, 1):
        return bool(raw)
    try:
        return to_bool(raw)
    except EvaluationError:
        raise ValidationError(f"{field} must be a boolean, got {raw!r}", field=field) from None


def parse_data_type(raw, default):
    if raw is None:
        return default
    if isinstance(raw, DataType):
        return raw
    try:
        return DataType(str(raw).strip().lower())
    except ValueError:
        raise ValidationError(f"unknown data_type {raw!r}", field="data_type") from None


def _first(payload, *keys):
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def _decode_payload(ctype, payload):
    if ctype == CT.NODE_STATUS:
        raw = _first(payload, "value", "statuses", "status")
        return StatusSet(statuses=tuple(as_list(raw)) if raw is not None else ())
    if ctype == CT.NODE_FACT:
        return FactCompare(
            fact_path=_first(payload, "fact_path", "fact"),
            data_type=parse_data_type(payload.get("data_type"), DataType.STRING),
            value=payload.get("value"),
        )
    if ctype == CT.REPORT_METRIC:
        return MetricCompare(
            metric=_first(payload, "metric", "metric_name"),
            data_type=parse_data_type(payload.get("data_type"), DataType.FLOAT),
            value=_first(payload, "value", "threshold"),
        )
    if ctype == CT.ENVIRONMENT_FILTER:
        return EnvironmentMatch(value=_first(payload, "value", "environments", "environment"))
    if ctype == CT.GROUP_FILTER:
        raw = _first(payload, "value", "group_ids", "groups")
        return GroupMatch(group_ids=tuple(as_list(raw)) if raw is not None else ())
    if ctype == CT.NODE_COUNT_THRESHOLD:
        return NodeCount(count=_first(payload, "count", "value", "threshold"))
    if ctype == CT.TIME_WINDOW_FILTER:
        return TimeWindow(minutes=_first(payload, "minutes", "value"))
    if ctype == CT.LAST_REPORT_TIME:
        return ReportAge(hours=_first(payload, "hours", "value"))
    if ctype in (CT.CONSECUTIVE_FAILURES, CT.CONSECUTIVE_CHANGES):
        return ReportStreak(count=_first(payload, "count", "value"),
                            within_hours=payload.get("within_hours"))
    if ctype == CT.CLASS_CHANGE_FREQUENCY:
        return ClassChanges(
            class_name=payload.get("class_name"),
            change_count=_first(payload, "change_count", "count", "value"),
            within_hours=payload.get("within_hours"),
        )
    raise ValidationError(f"no decoder for condition type {ctype.value}")


def parse_condition(data, default_id="c0"):
    """Decode one condition dict into a typed Condition.

    Payload fields may sit next to `type` or inside a nested `config` mapping.
    """
    if not isinstance(data, dict):
        raise ValidationError(f"condition must be a mapping, got {type(data).__name__}")
    raw_type = data.get("type", data.get("condition_type"))
    try:
        ctype = CT(raw_type)
    except ValueError:
        raise ValidationError(f"unknown condition type {raw_type!r}",
                              condition_id=data.get("id"), field="type") from None

    payload = dict(data)
    if isinstance(data.get("config"), dict):
        payload.update(data["config"])

    cid = str(data.get("id") or default_id)
    raw_op = payload.get("operator")
    try:
        if raw_op is None:
            if ctype not in DEFAULT_OPERATORS:
                raise ValidationError("operator is required", field="operator")
            operator = DEFAULT_OPERATORS[ctype]
        else:
            operator = parse_operator(raw_op)
        value = _decode_payload(ctype, payload)
        enabled = parse_flag(data.get("enabled", True))
    except ValidationError as e:
        e.condition_id = cid
        raise

    return Condition(
        id=cid,
        condition_type=ctype,
        operator=operator,
        value=value,
        enabled=enabled,
    )


def parse_rule(data):
    """Decode a rule dict (YAML or dashboard JSON) into an AlertRule."""
    if not isinstance(data, dict):
        raise ValidationError(f"rule must be a mapping, got {type(data).__name__}")
    rule_id = str(data.get("id") or "")
    if not rule_id:
        raise ValidationError("rule id is required", field="id")

    try:
        raw_conditions = data.get("conditions", [])
        logical = data.get("operator", data.get("condition_operator", "AND"))
        if isinstance(raw_conditions, dict):
            logical = raw_conditions.get("operator", logical)
            raw_conditions = raw_conditions.get("conditions", [])
        if not isinstance(raw_conditions, list):
            raise ValidationError("conditions must be a list", field="conditions")

        conditions = [parse_condition(c, default_id=f"{rule_id}-{i}")
                      for i, c in enumerate(raw_conditions)]

        threshold = data.get("node_count_threshold")
        if threshold is not None:
            if not isinstance(threshold, dict):
                threshold = {"count": threshold}
            conditions.append(parse_condition(
                dict(threshold, type=CT.NODE_COUNT_THRESHOLD.value),
                default_id=f"{rule_id}-node-count",
            ))

        return AlertRule(
            id=rule_id,
            name=data.get("name", rule_id),
            enabled=parse_flag(data.get("enabled", data.get("is_enabled", True))),
            severity=parse_severity(data.get("severity", "warning")),
            conditions=tuple(conditions),
            operator=parse_logical(logical),
            debounce_count=data.get("debounce_count", 1),
            cooldown_minutes=data.get("cooldown_minutes", 0),
            description=data.get("description") or "",
        )
    except ValidationError as e:
        e.rule_id = rule_id
        raise


# ── Validation ─────────────────────────────────────────

def _is_positive_int(value):
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value > 0
    if isinstance(value, str) and value.strip().isdigit():
        return int(value) > 0
    return False


def _is_non_negative_int(value):
    return value == 0 or value == "0" or _is_positive_int(value)


def _check_typed_value(condition, data_type, value):
    """Errors for a compare value that does not fit the declared data type."""
    op = condition.operator
    if op in (Op.EXISTS, Op.NOT_EXISTS):
        return []
    if value is None:
        return [f"{op.value!r} requires a value"]
    values = as_list(value) if op in (Op.IN, Op.NOT_IN) else [value]
    if op in (Op.IN, Op.NOT_IN) and not values:
        return [f"{op.value!r} requires a non-empty list"]
    if op in (Op.MATCH, Op.NOT_MATCH):
        return _check_regex(value)
    errors = []
    for v in values:
        try:
            coerce(v, data_type)
        except EvaluationError:
            errors.append(f"value {v!r} is not a valid {data_type.value}")
    return errors


def _check_regex(pattern):
    if not isinstance(pattern, str):
        return [f"regex must be a string, got {pattern!r}"]
    try:
        re.compile(pattern)
    except re.error as e:
        return [f"invalid regex {pattern!r}: {e}"]
    return []


def _validate_node_status(condition):
    statuses = condition.value.statuses
    if not statuses:
        return ["at least one status is required"]
    if condition.operator in (Op.EQ, Op.NE) and len(statuses) != 1:
        return [f"{condition.operator.value!r} takes a single status"]
    known = {s.value for s in NodeStatus}
    return [f"unknown node status {s!r}" for s in statuses if str(s).lower() not in known]


def _validate_node_fact(condition):
    v = condition.value
    errors = [] if v.fact_path else ["fact_path is required"]
    return errors + _check_typed_value(condition, v.data_type, v.value)


def _validate_report_metric(condition):
    v = condition.value
    errors = [] if v.metric else ["metric is required"]
    if v.data_type not in (DataType.INTEGER, DataType.FLOAT):
        errors.append(f"report metrics are numeric, not {v.data_type.value}")
        return errors
    return errors + _check_typed_value(condition, v.data_type, v.value)


def _validate_environment(condition):
    return _check_typed_value(condition, DataType.STRING, condition.value.value)


def _validate_group(condition):
    return [] if condition.value.group_ids else ["at least one group id is required"]


def _validate_node_count(condition):
    if _is_non_negative_int(condition.value.count):
        return []
    return [f"count must be a non-negative integer, got {condition.value.count!r}"]


def _validate_time_window(condition):
    if _is_positive_int(condition.value.minutes):
        return []
    return [f"minutes must be a positive integer, got {condition.value.minutes!r}"]


def _validate_report_age(condition):
    if _is_positive_int(condition.value.hours):
        return []
    return [f"hours must be a positive integer, got {condition.value.hours!r}"]


def _validate_streak(condition):
    v = condition.value
    errors = []
    if not _is_positive_int(v.count):
        errors.append(f"count must be a positive integer, got {v.count!r}")
    if not _is_positive_int(v.within_hours):
        errors.append(f"within_hours must be a positive integer, got {v.within_hours!r}")
    return errors


def _validate_class_changes(condition):
    v = condition.value
    errors = []
    if not v.class_name or not str(v.class_name).strip():
        errors.append("class_name is required")
    if not _is_positive_int(v.change_count):
        errors.append(f"change_count must be a positive integer, got {v.change_count!r}")
    if not _is_positive_int(v.within_hours):
        errors.append(f"within_hours must be a positive integer, got {v.within_hours!r}")
    return errors


VALIDATORS = {
    CT.NODE_STATUS: _validate_node_status,
    CT.NODE_FACT: _validate_node_fact,
    CT.REPORT_METRIC: _validate_report_metric,
    CT.ENVIRONMENT_FILTER: _validate_environment,
    CT.GROUP_FILTER: _validate_group,
    CT.NODE_COUNT_THRESHOLD: _validate_node_count,
    CT.TIME_WINDOW_FILTER: _validate_time_window,
    CT.LAST_REPORT_TIME: _validate_report_age,
    CT.CONSECUTIVE_FAILURES: _validate_streak,
    CT.CONSECUTIVE_CHANGES: _validate_streak,
    CT.CLASS_CHANGE_FREQUENCY: _validate_class_changes,
}


def validate_condition(condition, rule_id=None):
    """Return a list of ValidationError for one condition (empty when valid)."""
    def err(message, field=None):
        return ValidationError(message, rule_id=rule_id, condition_id=condition.id, field=field)

    if condition.operator not in legal_operators(condition):
        return [err(f"operator {condition.operator.value!r} is not allowed for "
                    f"{condition.condition_type.value}", field="operator")]
    return [err(message) for message in VALIDATORS[condition.condition_type](condition)]


def validate_rule(rule):
    """Check a decoded rule. Returns every problem found, empty when the rule is valid."""
    errors = []
    if not rule.name:
        errors.append(ValidationError("name is required", rule_id=rule.id, field="name"))
    if not _is_positive_int(rule.debounce_count):
        errors.append(ValidationError(f"debounce_count must be a positive integer, got "
                                      f"{rule.debounce_count!r}", rule_id=rule.id,
                                      field="debounce_count"))
    if not _is_non_negative_int(rule.cooldown_minutes):
        errors.append(ValidationError(f"cooldown_minutes must be a non-negative integer, got "
                                      f"{rule.cooldown_minutes!r}", rule_id=rule.id,
                                      field="cooldown_minutes"))

    seen = set()
    for condition in rule.conditions:
        if condition.id in seen:
            errors.append(ValidationError("duplicate condition id", rule_id=rule.id,
                                          condition_id=condition.id, field="id"))
        seen.add(condition.id)
        errors.extend(validate_condition(condition, rule.id))

    thresholds = [c for c in rule.enabled_conditions
                  if c.condition_type == CT.NODE_COUNT_THRESHOLD]
    if len(thresholds) > 1:
        errors.append(ValidationError("only one enabled NodeCountThreshold is allowed",
                                      rule_id=rule.id, condition_id=thresholds[1].id))
    for e in errors:
        logger.debug(f"Validation: {e}")
    return errors
