"""Cross-pass debounce counters and per-node cooldowns.

The evaluation engine is pure per pass; anything that must survive between
passes lives here and is owned by the orchestrator.
"""
import logging
import threading
from datetime import timedelta

logger = logging.getLogger("nodealert.alerts.debounce")


class DebounceTracker:
    """Thread-safe per-(rule, node) consecutive match counters and cooldowns."""

    def __init__(self):
        self._streaks = {}
        self._last_emitted = {}
        self._lock = threading.Lock()

    def record_pass(self, rule_id, matched, evaluated=None):
        """Record one pass for a rule and return {certname: consecutive matches}.

        Nodes that were evaluated but did not match are reset. Nodes that were
        skipped (absent from `evaluated`) keep their counter.
        """
        matched = set(matched)
        evaluated = set(evaluated) if evaluated is not None else None
        with self._lock:
            for key in [k for k in self._streaks if k[0] == rule_id]:
                certname = key[1]
                if certname in matched:
                    continue
                if evaluated is None or certname in evaluated:
                    del self._streaks[key]
            result = {}
            for certname in matched:
                key = (rule_id, certname)
                self._streaks[key] = self._streaks.get(key, 0) + 1
                result[certname] = self._streaks[key]
        return result

    def streak(self, rule_id, certname):
        with self._lock:
            return self._streaks.get((rule_id, certname), 0)

    def apply_cooldown(self, rule, triggers, now):
        """Drop triggers for nodes alerted within the rule's cooldown; remember the rest."""
        if not triggers:
            return []
        window = timedelta(minutes=int(rule.cooldown_minutes or 0))
        kept = []
        with self._lock:
            for trigger in triggers:
                key = (rule.id, trigger.certname)
                last = self._last_emitted.get(key)
                if last is not None and window and now - last < window:
                    logger.debug(f"Rule {rule.id} on {trigger.certname} is in cooldown")
                    continue
                self._last_emitted[key] = now
                kept.append(trigger)
        return kept

    def reset(self, rule_id=None):
        with self._lock:
            if rule_id is None:
                self._streaks.clear()
                self._last_emitted.clear()
                return
            for store in (self._streaks, self._last_emitted):
                for key in [k for k in store if k[0] == rule_id]:
                    del store[key]
