"""
API Routes

This module assembles the FastAPI routers.
Each router validates incoming requests with Pydantic models, delegates the
business logic to the services, and returns the results as JSON responses.
Errors raised by the services are translated into JSON by the handlers
registered in `favely.main`.
"""

from fastapi import APIRouter
from loguru import logger

from favely.routes.collaborators import router as collaborators_router
from favely.routes.feedback import router as feedback_router
from favely.routes.lists import router as lists_router
from favely.routes.search import router as search_router
from favely.routes.users import router as users_router
from favely.routes.webhooks import router as webhooks_router

router = APIRouter()


@router.get("/ping")
def ping():
    logger.debug("Ping endpoint called")
    return {"message": "pong"}


router.include_router(collaborators_router)
router.include_router(lists_router)
router.include_router(search_router)
router.include_router(users_router)
router.include_router(feedback_router)
router.include_router(webhooks_router)
