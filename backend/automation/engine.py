"""Automation engine - evaluates rules and executes actions on a schedule."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from automation.actions import ActionExecutor
from automation.history import ExecutionHistory
from automation.models import Action, AutomationRule
from automation.rules import (
    TIME_TRIGGER_COOLDOWN,
    check_time_trigger,
    evaluate_vehicle_condition,
    frequency_cooldown,
    is_suppressed,
)
from automation.store import RuleNotFoundError, RuleStore
from services.notifications import Notifier
from tesla.errors import VehicleAPIError
from tesla.gateway import VehicleGateway
from tesla.models import VehicleSnapshot

logger = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass
class RuleState:
    """In-memory execution tracking for one rule."""

    last_triggered: Optional[datetime] = None
    trigger_count: int = 0
    last_error: Optional[str] = None


class AutomationEngine:
    """Runs the periodic vehicle-state and time-of-day passes over the rule store."""

    def __init__(
        self,
        gateway: VehicleGateway,
        rule_store: RuleStore,
        notifier: Notifier,
        history: Optional[ExecutionHistory] = None,
        interval_seconds: float = 60,
        action_delay_seconds: float = 1.0,
        clock: Callable[[], datetime] = _local_now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._gateway = gateway
        self._rule_store = rule_store
        self._notifier = notifier
        self._history = history
        self._interval_seconds = interval_seconds
        self._clock = clock
        self._actions = ActionExecutor(gateway, notifier, action_delay_seconds, sleep)
        self._states: dict[str, RuleState] = {}
        self._scheduler: Optional[AsyncIOScheduler] = None

    # --- Scheduling ---

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self):
        """Start both evaluation passes. Calling start twice is a no-op."""
        if self.running:
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.check_vehicle_state_triggers,
            IntervalTrigger(seconds=self._interval_seconds),
            id="vehicle_state_rules",
            name="Vehicle State Rule Evaluator",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.add_job(
            self.check_time_triggers,
            IntervalTrigger(seconds=self._interval_seconds),
            id="time_rules",
            name="Time Rule Evaluator",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Automation engine started (every %ss)", self._interval_seconds)

    def stop(self):
        """Gracefully shut down the scheduler."""
        if self.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Automation engine stopped")
        self._scheduler = None

    # --- Rule state ---

    def get_rule_state(self, rule_id: str) -> RuleState:
        return self._states.setdefault(rule_id, RuleState())

    def forget(self, rule_id: str):
        """Drop runtime state for a deleted rule."""
        self._states.pop(rule_id, None)

    def _enabled_rules(self, trigger_type: str) -> list[AutomationRule]:
        return [r for r in self._rule_store.list() if r.enabled and r.trigger.type == trigger_type]

    # --- Evaluation passes ---

    async def check_vehicle_state_triggers(self):
        """Evaluate every enabled vehicle_state rule against the current snapshot."""
        if not self._gateway.is_configured():
            logger.debug("Vehicle not configured, skipping vehicle state rules")
            return

        rules = self._enabled_rules("vehicle_state")
        if not rules:
            return

        try:
            snapshot = await self._gateway.get_vehicle_data(self._gateway.current_vehicle_id())
        except VehicleAPIError as e:
            logger.warning("Vehicle data unavailable, skipping vehicle state rules: %s", e)
            return

        now = self._clock()
        for rule in rules:
            try:
                if not evaluate_vehicle_condition(snapshot, rule.trigger.condition):
                    continue
                state = self.get_rule_state(rule.id)
                if is_suppressed(frequency_cooldown(rule.trigger.frequency), state.last_triggered, now):
                    logger.debug("Rule %s suppressed by %s", rule.id, rule.trigger.frequency)
                    continue

                logger.info("Rule triggered: %s (id=%s)", rule.name, rule.id)
                await self.execute_rule(rule, snapshot)
            except Exception as e:
                logger.exception("Error evaluating rule %s: %s", rule.name, e)

    async def check_time_triggers(self):
        """Fire every enabled time rule whose HH:MM matches the current minute."""
        now = self._clock()
        for rule in self._enabled_rules("time"):
            try:
                if not check_time_trigger(rule.trigger, now):
                    continue
                if is_suppressed(TIME_TRIGGER_COOLDOWN, self.get_rule_state(rule.id).last_triggered, now):
                    continue

                logger.info("Time rule triggered: %s (id=%s)", rule.name, rule.id)
                await self.execute_rule(rule)
            except Exception as e:
                logger.exception("Error evaluating rule %s: %s", rule.name, e)

    async def trigger_rule(self, rule_id: str) -> dict:
        """Run a rule's actions now, for triggers asserted outside the engine.

        Location, calendar and schedule triggers have no evaluator of their
        own; an external source (or the dashboard) fires them through here.
        """
        rule = self._rule_store.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return await self.execute_rule(rule)

    # --- Execution ---

    async def execute_rule(self, rule: AutomationRule, snapshot: Optional[VehicleSnapshot] = None) -> dict:
        """Execute all of a rule's actions and report the outcome."""
        success, errors = await self._actions.execute_actions(rule.actions, snapshot)

        state = self.get_rule_state(rule.id)
        state.last_triggered = self._clock()
        state.trigger_count += 1
        state.last_error = "; ".join(errors) if errors else None

        if success:
            await self._notifier.send("Automation Executed", f"{rule.name} completed successfully", "low")
        else:
            await self._notifier.send(
                "Automation Failed", f"{rule.name} failed: {'; '.join(errors)}", "high"
            )

        if self._history is not None:
            try:
                await self._history.record(rule, success, errors)
            except Exception as e:
                logger.error("Failed to record execution of %s: %s", rule.id, e)

        return {"rule_id": rule.id, "success": success, "errors": errors}

    async def execute_action(self, action: Action, snapshot: Optional[VehicleSnapshot] = None):
        """Execute a single action. Raises on failure."""
        await self._actions.execute_action(action, snapshot)
