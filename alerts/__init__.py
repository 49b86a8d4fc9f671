"""Alert condition evaluation engine."""
from alerts.errors import AlertEngineError, ValidationError, EvaluationError, OrchestratorError
from alerts.conditions import parse_rule, parse_condition, validate_rule
from alerts.evaluator import RuleEvaluator, evaluate_rule
from alerts.triggers import generate_triggers, node_count_gate
from alerts.debounce import DebounceTracker
from alerts.engine import AlertEngine
from alerts.rules_manager import RulesManager
from alerts.channels import ConsoleChannel, FileChannel
