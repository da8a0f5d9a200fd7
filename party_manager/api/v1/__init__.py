from .party.party import router as party_router
from .services.server_status import router as server_status_router

routers = [party_router, server_status_router]
