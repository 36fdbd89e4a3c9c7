"""Rule execution history, stored in the rule_execution_log table."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from automation.models import AutomationRule
from database import RuleExecutionLog

logger = logging.getLogger(__name__)


class ExecutionHistory:
    """Records every automation rule execution."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def record(self, rule: AutomationRule, success: bool, errors: list[str]):
        async with self._session_factory() as session:
            session.add(RuleExecutionLog(
                rule_id=rule.id,
                rule_name=rule.name,
                trigger_type=rule.trigger.type,
                actions_executed=[action.model_dump(mode="json") for action in rule.actions],
                success=success,
                error_message="; ".join(errors) if errors else None,
            ))
            await session.commit()

    async def recent(self, limit: int = 50) -> list[dict]:
        """Get recent rule execution log entries."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(RuleExecutionLog)
                .order_by(RuleExecutionLog.timestamp.desc(), RuleExecutionLog.id.desc())
                .limit(limit)
            )
            logs = result.scalars().all()

        return [
            {
                "id": log.id,
                "timestamp": log.timestamp.isoformat(),
                "rule_id": log.rule_id,
                "rule_name": log.rule_name,
                "trigger_type": log.trigger_type,
                "actions_executed": log.actions_executed,
                "success": log.success,
                "error_message": log.error_message,
            }
            for log in logs
        ]
