"""API routers."""

from corphub.routers.auth import router as auth_router
from corphub.routers.chat import router as chat_router
from corphub.routers.companies import router as companies_router
from corphub.routers.jobs import router as jobs_router
from corphub.routers.meetings import router as meetings_router
from corphub.routers.messages import router as messages_router
from corphub.routers.users import router as users_router
from corphub.routers.websocket import router as websocket_router
from corphub.routers.zoom import router as zoom_router

__all__ = [
    "auth_router",
    "chat_router",
    "companies_router",
    "jobs_router",
    "meetings_router",
    "messages_router",
    "users_router",
    "websocket_router",
    "zoom_router",
]
