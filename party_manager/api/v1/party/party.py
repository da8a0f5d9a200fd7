import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from party_manager.dependency.party import PartyDeps, uuid_query
from party_manager.schemas.config import settings
from party_manager.schemas.party import (
    ErrorResponse,
    MessageResponse,
    PartyInfoResponse,
    RegisterPartyResponse,
    RelocatePartyResponse,
)
from party_manager.services.errors import Outcome
from party_manager.services.registry import PartyRegistry

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix=f"{settings.api_prefix}/party",
    tags=["Party"],
    responses={400: {"model": ErrorResponse}},
)


def failure_response(outcome: Outcome) -> JSONResponse:
    """Переводит код ошибки реестра в JSON-ответ `{"error": ...}`."""

    status_code = 400
    if settings.strict_status_codes:
        status_code = outcome.error.kind.strict_status
    logger.debug("Party request failed: %s %s", outcome.error.value, outcome.message)
    return JSONResponse(status_code=status_code, content={"error": outcome.message})


@router.post("/register", status_code=201, response_model=RegisterPartyResponse)
async def register_party(
    leader_id: UUID = Depends(uuid_query("leaderUuid")),
    name: str | None = Query(None),
    registry: PartyRegistry = Depends(PartyDeps.get_registry),
):
    outcome = await registry.register_party(leader_id, name)
    if not outcome.ok:
        return failure_response(outcome)
    return {"partyUUID": str(outcome.value), "message": "Party registered successfully"}


@router.post("/join", response_model=MessageResponse)
async def join_party(
    party_id: UUID = Depends(uuid_query("partyUUID")),
    player_id: UUID = Depends(uuid_query("playerUUID")),
    registry: PartyRegistry = Depends(PartyDeps.get_registry),
):
    outcome = await registry.join_party(party_id, player_id)
    if not outcome.ok:
        return failure_response(outcome)
    return {"message": "Joined party successfully"}


@router.post("/leave", response_model=MessageResponse)
async def leave_party(
    player_id: UUID = Depends(uuid_query("playerUUID")),
    registry: PartyRegistry = Depends(PartyDeps.get_registry),
):
    """Выход из пати. Если в пати никого не осталось, она удаляется."""

    outcome = await registry.leave_party(player_id)
    if not outcome.ok:
        return failure_response(outcome)
    return {"message": "Left party successfully"}


@router.post("/unregister", response_model=MessageResponse)
async def unregister_party(
    player_id: UUID = Depends(uuid_query("playerUUID")),
    registry: PartyRegistry = Depends(PartyDeps.get_registry),
):
    outcome = await registry.unregister_party(player_id)
    if not outcome.ok:
        return failure_response(outcome)
    return {"message": "Party unregistered successfully"}


@router.post("/transferLeader", response_model=MessageResponse)
async def transfer_leader(
    player_id: UUID = Depends(uuid_query("playerUUID")),
    new_leader_id: UUID = Depends(uuid_query("newLeaderUUID")),
    registry: PartyRegistry = Depends(PartyDeps.get_registry),
):
    outcome = await registry.transfer_leadership(player_id, new_leader_id)
    if not outcome.ok:
        return failure_response(outcome)
    return {"message": "Party leader transferred successfully"}


@router.post("/rename", response_model=MessageResponse)
async def rename_party(
    player_id: UUID = Depends(uuid_query("playerUUID")),
    name: str | None = Query(None),
    registry: PartyRegistry = Depends(PartyDeps.get_registry),
):
    outcome = await registry.rename_party(player_id, name)
    if not outcome.ok:
        return failure_response(outcome)
    return {"message": "Party renamed successfully"}


@router.post("/transfer", response_model=RelocatePartyResponse)
async def transfer_party(
    player_id: UUID = Depends(uuid_query("playerUUID")),
    server_alias: str | None = Query(None, alias="serverAlias"),
    registry: PartyRegistry = Depends(PartyDeps.get_registry),
):
    """
    Переводит всю пати на другой сервер.
    serverAlias необязателен: без него берётся `settings.default_server_alias`.
    """

    outcome = await registry.relocate_party(player_id, server_alias)
    if not outcome.ok:
        return failure_response(outcome)
    return {"message": "Party transfer initiated", "requested": outcome.value}


@router.get("/info", response_model=PartyInfoResponse)
async def party_info(
    player_id: UUID = Depends(uuid_query("playerUUID")),
    registry: PartyRegistry = Depends(PartyDeps.get_registry),
):
    outcome = await registry.party_info(player_id)
    if not outcome.ok:
        return failure_response(outcome)
    return PartyInfoResponse.from_snapshot(outcome.value)
