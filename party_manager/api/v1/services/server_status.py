import datetime
import time

from fastapi import APIRouter, Depends

from party_manager.dependency.party import PartyDeps
from party_manager.schemas.config import settings
from party_manager.schemas.party import ServerStatusResponse
from party_manager.schemas.utils import HealthResponse
from party_manager.services.registry import PartyRegistry

router = APIRouter(prefix=settings.api_prefix, tags=["Status"])

start_time = time.time()


@router.get("/server-status", response_model=ServerStatusResponse)
async def server_status(registry: PartyRegistry = Depends(PartyDeps.get_registry)):
    """Функция `server_status` отдаёт аптайм и размер реестра пати.

    Параметры:
        registry (PartyRegistry): Реестр пати приложения.

    Возвращает:
        dict: Аптайм, количество пати и игроков в них.
    """

    uptime = int(time.time() - start_time)
    snapshots = await registry.snapshots()

    return {
        "uptime": f"{uptime} seconds",
        "parties": len(snapshots),
        "players": sum(len(s.members) for s in snapshots),
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }


@router.get("/healthcheck", response_model=HealthResponse)
async def healthcheck():
    return {"health": "Alive"}
