from fastapi import APIRouter

from . import (
    audit,
    auth,
    cache,
    communication,
    dashboard,
    document,
    due,
    due_type,
    election,
    event,
    notification,
    payment,
    pharmacy,
    user,
)

api_router = APIRouter()

routers = [
    auth.router,
    user.router,
    pharmacy.router,
    due_type.router,
    due.router,
    payment.router,
    event.router,
    election.router,
    communication.router,
    notification.router,
    document.router,
    dashboard.router,
    audit.router,
    cache.router,
]

for router in routers:
    api_router.include_router(router)

__all__ = ["api_router"]
