"""Alert rules loading and management."""
import logging
import yaml
from pathlib import Path

from alerts.conditions import parse_rule, validate_rule
from alerts.errors import ValidationError

logger = logging.getLogger("nodealert.alerts.rules")


class RulesManager:
    """Loads rules from YAML, keeping only those that decode and validate."""

    def __init__(self, rules_path="config/alert_rules.yaml"):
        self.rules_path = Path(rules_path)
        self.rules = []
        self.errors = []
        self._mtime = None
        self.load()

    def load(self):
        self.rules = []
        self.errors = []
        if not self.rules_path.exists():
            logger.warning(f"Alert rules file not found: {self.rules_path}")
            return
        with open(self.rules_path) as f:
            data = yaml.safe_load(f) or {}
        self._mtime = self.rules_path.stat().st_mtime
        self.rules = self._parse_rules(data.get("rules", []))
        logger.info(f"Loaded {len(self.rules)} rules ({len(self.errors)} validation errors)")

    def reload_if_changed(self):
        """Re-read the rules file when its mtime moved. Returns True if reloaded."""
        if self.rules_path is None or not self.rules_path.exists():
            return False
        if self.rules_path.stat().st_mtime == self._mtime:
            return False
        logger.info(f"Rules file changed, reloading {self.rules_path}")
        self.load()
        return True

    @classmethod
    def from_dicts(cls, raw_rules):
        manager = cls.__new__(cls)
        manager.rules_path = None
        manager._mtime = None
        manager.errors = []
        manager.rules = manager._parse_rules(raw_rules)
        return manager

    def _parse_rules(self, raw_rules):
        rules = []
        seen = set()
        for raw in raw_rules or []:
            try:
                rule = parse_rule(raw)
            except ValidationError as e:
                logger.warning(f"Skipping undecodable rule: {e}")
                self.errors.append(e)
                continue

            problems = validate_rule(rule)
            if rule.id in seen:
                problems.append(ValidationError("duplicate rule id", rule_id=rule.id, field="id"))
            if problems:
                for p in problems:
                    logger.warning(f"Invalid rule: {p}")
                self.errors.extend(problems)
                continue
            seen.add(rule.id)
            rules.append(rule)
        return rules

    def get_enabled_rules(self):
        return [r for r in self.rules if r.enabled]

    def get_rule(self, rule_id):
        for r in self.rules:
            if r.id == rule_id:
                return r
        return None

    def get_all_rules(self):
        return self.rules
