"""Trigger sinks. Persistence, dedup and notification fan-out live behind these."""
import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger("nodealert.alerts.channels")


@runtime_checkable
class AlertChannel(Protocol):
    def send(self, trigger) -> None: ...


class ConsoleChannel:
    """Print triggers to terminal with rich formatting."""

    severity_styles = {
        "emergency": "bold white on magenta",
        "critical": "bold white on red",
        "warning": "bold yellow",
        "info": "bold blue",
    }

    def __init__(self, console=None):
        self.console = console

    def send(self, trigger):
        from rich.console import Console
        console = self.console or Console()

        sev = trigger.severity.value
        style = self.severity_styles.get(sev, "")
        name = trigger.rule_name or trigger.alert_rule_id
        console.print(f"[{style}] [{sev.upper()}] {name}: {trigger.certname} "
                      f"(x{trigger.triggered_count})[/]")


class FileChannel:
    """Append triggers to a JSON lines log file."""

    def __init__(self, log_path="data/alert_triggers.jsonl"):
        self.log_path = Path(log_path)

    def send(self, trigger):
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a") as f:
                f.write(json.dumps(trigger.to_dict()) + "\n")
        except OSError as e:
            logger.warning(f"Failed to write trigger to file: {e}")
