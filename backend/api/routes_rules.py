"""API routes for automation rules CRUD."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_engine, get_history, get_rule_store
from automation.engine import AutomationEngine
from automation.history import ExecutionHistory
from automation.models import AutomationRule, RuleCreate, RuleUpdate
from automation.store import RuleNotFoundError, RuleStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rules", tags=["rules"])


def _rule_response(rule: AutomationRule, engine: AutomationEngine) -> dict:
    state = engine.get_rule_state(rule.id)
    data = rule.model_dump(mode="json")
    data.update({
        "last_triggered": state.last_triggered.isoformat() if state.last_triggered else None,
        "trigger_count": state.trigger_count,
        "last_error": state.last_error,
    })
    return data


def _not_found(rule_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Rule not found: {rule_id}")


# --- Execution Log ---


@router.get("/log/recent")
async def recent_executions(limit: int = 50, history: ExecutionHistory = Depends(get_history)):
    """Get recent rule execution log entries."""
    return await history.recent(limit)


# --- Endpoints ---


@router.get("")
async def list_rules(
    store: RuleStore = Depends(get_rule_store),
    engine: AutomationEngine = Depends(get_engine),
):
    """List all automation rules."""
    return [_rule_response(rule, engine) for rule in store.list()]


@router.get("/{rule_id}")
async def get_rule(
    rule_id: str,
    store: RuleStore = Depends(get_rule_store),
    engine: AutomationEngine = Depends(get_engine),
):
    """Get a single automation rule."""
    rule = store.get(rule_id)
    if rule is None:
        raise _not_found(rule_id)
    return _rule_response(rule, engine)


@router.post("", status_code=201)
async def create_rule(
    data: RuleCreate,
    store: RuleStore = Depends(get_rule_store),
    engine: AutomationEngine = Depends(get_engine),
):
    """Create a new automation rule."""
    rule = store.create(data)
    return _rule_response(rule, engine)


@router.put("/{rule_id}")
async def update_rule(
    rule_id: str,
    data: RuleUpdate,
    store: RuleStore = Depends(get_rule_store),
    engine: AutomationEngine = Depends(get_engine),
):
    """Update an existing automation rule."""
    try:
        rule = store.update(rule_id, data.model_dump(exclude_unset=True, exclude_none=True))
    except RuleNotFoundError:
        raise _not_found(rule_id)
    return _rule_response(rule, engine)


@router.delete("/{rule_id}")
async def delete_rule(
    rule_id: str,
    store: RuleStore = Depends(get_rule_store),
    engine: AutomationEngine = Depends(get_engine),
):
    """Delete an automation rule."""
    try:
        store.delete(rule_id)
    except RuleNotFoundError:
        raise _not_found(rule_id)
    engine.forget(rule_id)
    return {"deleted": True}


@router.post("/{rule_id}/toggle")
async def toggle_rule(rule_id: str, store: RuleStore = Depends(get_rule_store)):
    """Toggle a rule's enabled state."""
    rule = store.get(rule_id)
    if rule is None:
        raise _not_found(rule_id)

    rule = store.disable(rule_id) if rule.enabled else store.enable(rule_id)
    return {"id": rule.id, "enabled": rule.enabled}


@router.post("/{rule_id}/trigger")
async def trigger_rule(rule_id: str, engine: AutomationEngine = Depends(get_engine)):
    """Run a rule's actions now, regardless of its trigger."""
    try:
        return await engine.trigger_rule(rule_id)
    except RuleNotFoundError:
        raise _not_found(rule_id)
