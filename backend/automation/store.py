"""Automation rule store.

Holds built-in and custom rules and persists the whole collection to the
setup store on every mutation. Built-ins are seeded only the first time,
so user edits and deletions of built-in rules survive restarts.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from automation.models import AutomationRule, RuleCreate
from services.setup_store import SetupStore

logger = logging.getLogger(__name__)

RULES_KEY = "automation_rules"


class RuleNotFoundError(KeyError):
    """No rule with the given id."""
    pass


def default_rules() -> list[AutomationRule]:
    """Built-in rules seeded into an empty store."""
    return [
        AutomationRule.model_validate({
            "id": "arrive_home_evening",
            "name": "Arrive Home (Evening)",
            "description": "Actions when arriving home after 6 PM",
            "enabled": False,
            "trigger": {
                "type": "location",
                "location": "home",
                "event": "arrive",
                "radius": 150,
                "conditions": {"timeAfter": "18:00", "timeBefore": "23:59"},
            },
            "actions": [
                {"type": "vehicle_command", "command": "flash_lights", "description": "Flash lights to signal arrival"},
                {"type": "climate_control", "command": "stop_climate", "description": "Turn off climate control"},
                {"type": "notification", "message": "Welcome home! Vehicle secured.", "description": "Show welcome notification"},
            ],
        }),
        AutomationRule.model_validate({
            "id": "departure_preparation",
            "name": "Departure Preparation",
            "description": "Prepare vehicle before scheduled departure",
            "enabled": False,
            "trigger": {
                "type": "calendar",
                "event_keywords": ["meeting", "appointment", "work"],
                "time_before": 15,
                "conditions": {"hasLocation": True, "travelTimeRequired": True},
            },
            "actions": [
                {"type": "climate_control", "command": "start_climate", "temperature": 22, "description": "Pre-condition cabin"},
                {"type": "charging_check", "minimum_level": 80, "description": "Ensure sufficient charge for trip"},
                {"type": "notification", "message": "Vehicle prepared for departure.", "description": "Show preparation notification"},
            ],
        }),
        AutomationRule.model_validate({
            "id": "low_battery_alert",
            "name": "Low Battery Alert",
            "description": "Alert when battery is low with nearby charging options",
            "enabled": True,
            "trigger": {"type": "vehicle_state", "condition": "battery_level < 20", "frequency": "once_per_trip"},
            "actions": [
                {
                    "type": "notification",
                    "priority": "high",
                    "message": "Battery low ({battery_level}%). Consider finding a charging station.",
                    "description": "Show low battery alert",
                },
            ],
        }),
    ]


class RuleStore:
    """CRUD over automation rules, persisted as one collection."""

    def __init__(self, setup_store: SetupStore):
        self._setup_store = setup_store
        self._rules: dict[str, AutomationRule] = {}
        self._load()

    def _load(self):
        if not self._setup_store.contains(RULES_KEY):
            rules = {rule.id: rule for rule in default_rules()}
            self._save(rules)
            self._rules = rules
            logger.info("Seeded %d built-in automation rules", len(self._rules))
            return

        for raw in self._setup_store.get(RULES_KEY, []) or []:
            try:
                rule = AutomationRule.model_validate(raw)
            except ValidationError as e:
                logger.warning("Skipping invalid stored rule %s: %s", raw.get("id", "?"), e)
                continue
            self._rules[rule.id] = rule
        logger.info("Loaded %d automation rules", len(self._rules))

    def _save(self, rules: dict[str, AutomationRule]):
        self._setup_store.set(RULES_KEY, [rule.model_dump(mode="json") for rule in rules.values()])

    def _require(self, rule_id: str) -> AutomationRule:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    # --- Queries ---

    def list(self) -> list[AutomationRule]:
        return list(self._rules.values())

    def get(self, rule_id: str) -> Optional[AutomationRule]:
        return self._rules.get(rule_id)

    # --- Mutations (persisted first, then swapped into memory) ---

    def create(self, data: RuleCreate) -> AutomationRule:
        """Create a custom rule with a fresh id and creation timestamp."""
        rule = AutomationRule(
            id=f"custom_{uuid.uuid4().hex[:12]}",
            name=data.name,
            description=data.description,
            enabled=data.enabled,
            trigger=data.trigger,
            actions=data.actions,
            created_at=datetime.now(timezone.utc),
            custom=True,
        )
        rules = {**self._rules, rule.id: rule}
        self._save(rules)
        self._rules = rules
        logger.info("Created automation rule %s (%s)", rule.name, rule.id)
        return rule

    def update(self, rule_id: str, fields: dict) -> AutomationRule:
        """Apply a partial update. Id, creation time and custom flag are fixed."""
        rule = self._require(rule_id)
        fields = {k: v for k, v in fields.items() if k not in ("id", "created_at", "custom")}
        updated = AutomationRule.model_validate({**rule.model_dump(), **fields})
        rules = {**self._rules, rule_id: updated}
        self._save(rules)
        self._rules = rules
        logger.info("Updated automation rule %s: %s", rule_id, sorted(fields))
        return updated

    def enable(self, rule_id: str) -> AutomationRule:
        return self.update(rule_id, {"enabled": True})

    def disable(self, rule_id: str) -> AutomationRule:
        return self.update(rule_id, {"enabled": False})

    def delete(self, rule_id: str):
        self._require(rule_id)
        rules = {k: v for k, v in self._rules.items() if k != rule_id}
        self._save(rules)
        self._rules = rules
        logger.info("Deleted automation rule %s", rule_id)
