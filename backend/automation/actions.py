"""Automation actions - executable commands triggered by rules."""

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Optional

from automation.models import (
    Action,
    ChargingCheckAction,
    ClimateControlAction,
    NotificationAction,
    VehicleCommandAction,
)
from services.notifications import Notifier
from tesla.errors import CommandExecutionError
from tesla.gateway import VehicleGateway
from tesla.models import VehicleSnapshot

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def render_message(template: str, snapshot: Optional[VehicleSnapshot]) -> str:
    """Fill {battery_level}-style placeholders from a snapshot. Unknown ones stay as-is."""
    if snapshot is None:
        return template

    values = {
        "battery_level": snapshot.charge_state.battery_level,
        "battery_range": round(snapshot.charge_state.battery_range),
        "est_battery_range": round(snapshot.charge_state.est_battery_range),
        "charging_state": snapshot.charge_state.charging_state,
        "inside_temp": snapshot.climate_state.inside_temp,
        "outside_temp": snapshot.climate_state.outside_temp,
        "display_name": snapshot.display_name,
    }

    def replace(match: re.Match) -> str:
        value = values.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return _PLACEHOLDER.sub(replace, template)


class ActionExecutor:
    """Dispatches rule actions to the vehicle gateway and the notifier."""

    def __init__(
        self,
        gateway: VehicleGateway,
        notifier: Notifier,
        delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._gateway = gateway
        self._notifier = notifier
        self._delay_seconds = delay_seconds
        self._sleep = sleep

    async def execute_actions(
        self,
        actions: list[Action],
        snapshot: Optional[VehicleSnapshot] = None,
    ) -> tuple[bool, list[str]]:
        """Execute a rule's actions in order, pausing briefly between them.

        Returns:
            (all_succeeded, list_of_error_messages)
        """
        errors = []

        for index, action in enumerate(actions):
            if index and self._delay_seconds > 0:
                await self._sleep(self._delay_seconds)
            try:
                await self.execute_action(action, snapshot)
                logger.info("Action executed: %s", action.type)
            except Exception as e:
                error_msg = f"Action '{action.type}' failed: {e}"
                logger.error(error_msg)
                errors.append(error_msg)

        return len(errors) == 0, errors

    async def execute_action(self, action: Action, snapshot: Optional[VehicleSnapshot] = None):
        """Execute a single action."""
        if isinstance(action, VehicleCommandAction):
            await self._command(action.command, action.params)

        elif isinstance(action, ClimateControlAction):
            if action.command == "start_climate":
                await self._command("auto_conditioning_start")
                if action.temperature is not None:
                    await self._command("set_temps", {
                        "driver_temp": action.temperature,
                        "passenger_temp": action.temperature,
                    })
            else:
                await self._command("auto_conditioning_stop")

        elif isinstance(action, ChargingCheckAction):
            if snapshot is None:
                snapshot = await self._gateway.get_vehicle_data(self._gateway.current_vehicle_id())
            level = snapshot.charge_state.battery_level
            if level < action.minimum_level:
                await self._notifier.send(
                    "Charging Needed",
                    f"Battery at {level}%, need {action.minimum_level}% for trip",
                    "high",
                )

        elif isinstance(action, NotificationAction):
            await self._notifier.send(action.title, render_message(action.message, snapshot), action.priority)

        else:
            raise ValueError(f"Unknown action type: {getattr(action, 'type', action)!r}")

    async def _command(self, command: str, params: Optional[dict] = None):
        vehicle_id = self._gateway.current_vehicle_id()
        result = await self._gateway.execute_command(vehicle_id, command, params)
        if not result.success:
            raise CommandExecutionError(
                f"{command}: {result.detail or result.error}", command=command, reason=result.error
            )
