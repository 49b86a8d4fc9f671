"""Exception taxonomy for rule validation, evaluation and orchestration."""


class AlertEngineError(Exception):
    """Base class for alert engine errors."""


class ValidationError(AlertEngineError):
    """A rule or condition is malformed. Raised or collected at rule load time."""
    def __init__(self, message, rule_id=None, condition_id=None, field=None):
        super().__init__(message)
        self.message = message
        self.rule_id = rule_id
        self.condition_id = condition_id
        self.field = field

    def __str__(self):
        where = [p for p in (self.rule_id, self.condition_id) if p]
        prefix = f"[{'/'.join(where)}] " if where else ""
        suffix = f" (field: {self.field})" if self.field else ""
        return f"{prefix}{self.message}{suffix}"


class EvaluationError(AlertEngineError):
    """A condition could not be computed for a node. The condition counts as not matched."""
    def __init__(self, message, condition_id=None, certname=None):
        super().__init__(message)
        self.message = message
        self.condition_id = condition_id
        self.certname = certname

    def __str__(self):
        return f"{self.message} (node={self.certname}, condition={self.condition_id})"


class OrchestratorError(AlertEngineError):
    """Node data could not be fetched in time. The node is skipped for this pass."""
    def __init__(self, message, certname=None):
        super().__init__(message)
        self.message = message
        self.certname = certname

    def __str__(self):
        return f"{self.message} (node={self.certname})"
