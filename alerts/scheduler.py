"""Background scheduler for periodic evaluation passes."""
import logging
import threading
import time

import schedule

logger = logging.getLogger("nodealert.scheduler")


class EvaluationScheduler:
    def __init__(self, engine, rules_manager, interval_seconds=300):
        self.engine = engine
        self.rules_manager = rules_manager
        self.interval = interval_seconds
        self._scheduler = schedule.Scheduler()
        self._thread = None
        self._running = False
        self._cancel = threading.Event()
        self._callbacks = []
        self._consecutive_failures = 0

    def on_pass(self, callback):
        """Register callback called with the trigger list after each successful pass."""
        self._callbacks.append(callback)

    def start(self):
        """Start background evaluation."""
        if self._running:
            return
        self._running = True
        self._cancel.clear()

        self._scheduler.every(self.interval).seconds.do(self._pass_job)

        self._thread = threading.Thread(target=self._run_loop, daemon=True)
        self._thread.start()
        logger.info(f"Scheduler started (every {self.interval}s)")

    def stop(self):
        """Stop background evaluation, cancelling a pass in progress."""
        self._running = False
        self._cancel.set()
        self._scheduler.clear()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Scheduler stopped")

    def _run_loop(self):
        # Do an initial pass immediately
        self._pass_job()
        while self._running:
            self._scheduler.run_pending()
            time.sleep(1)

    def _pass_job(self):
        try:
            if self.rules_manager.reload_if_changed():
                self.engine.tracker.reset()
            triggers = self.engine.check(self.rules_manager.get_enabled_rules(), cancel=self._cancel)
            self._consecutive_failures = 0
            for cb in self._callbacks:
                try:
                    cb(triggers)
                except Exception as e:
                    logger.warning(f"Callback error: {e}")
        except Exception as e:
            self._consecutive_failures += 1
            logger.error(f"Evaluation pass failed ({self._consecutive_failures} consecutive): {e}")
            if self._consecutive_failures >= 5:
                logger.critical("5+ consecutive evaluation pass failures!")
