import logging
from typing import Any, Awaitable

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field

from squirrel_away.config import load_settings
from squirrel_away.core.errors import RejectedActionError, UnknownBudgetUnitError
from squirrel_away.core.protocol.actions import Action
from squirrel_away.core.protocol.models import WireModel
from squirrel_away.core.protocol.state import StateBlob
from squirrel_away.persistence.memory import InMemoryPersistence
from squirrel_away.services.budget_service import BudgetService

logger = logging.getLogger(__name__)

router = APIRouter()

_persistence = InMemoryPersistence()
_budget_service = BudgetService(persistence=_persistence, strict=load_settings().strict_history)


def get_budget_service() -> BudgetService:
    return _budget_service


class ClientRequest(WireModel):
    client_id: str = Field(min_length=1)


class ActionRequest(ClientRequest):
    action: Action


async def _respond(state_id: str, call: Awaitable[StateBlob]) -> dict[str, Any]:
    try:
        state = await call
    except UnknownBudgetUnitError as e:
        logger.warning("rejected state with unknown budget unit", extra={"state_id": state_id})
        raise HTTPException(status_code=400, detail=str(e)) from e
    except RejectedActionError as e:
        logger.warning("rejected action", extra={"state_id": state_id})
        raise HTTPException(status_code=400, detail=str(e)) from e
    return state.to_wire()


@router.get("/states/{state_id}")
async def get_state(state_id: str, service: BudgetService = Depends(get_budget_service)) -> dict:
    return await _respond(state_id, service.get_state(state_id))


@router.post("/states/{state_id}/actions")
async def post_action(
    state_id: str, req: ActionRequest, service: BudgetService = Depends(get_budget_service)
) -> dict:
    logger.info("action received", extra={"state_id": state_id, "action_id": req.action.id or "-"})
    return await _respond(state_id, service.apply_action(state_id, req.client_id, req.action))


@router.post("/states/{state_id}/undo")
async def post_undo(
    state_id: str, req: ClientRequest, service: BudgetService = Depends(get_budget_service)
) -> dict:
    return await _respond(state_id, service.undo(state_id, req.client_id))


@router.post("/states/{state_id}/redo")
async def post_redo(
    state_id: str, req: ClientRequest, service: BudgetService = Depends(get_budget_service)
) -> dict:
    return await _respond(state_id, service.redo(state_id, req.client_id))


@router.post("/states/{state_id}/sync")
async def post_sync(
    state_id: str, remote: StateBlob, service: BudgetService = Depends(get_budget_service)
) -> dict:
    return await _respond(state_id, service.sync(state_id, remote))
