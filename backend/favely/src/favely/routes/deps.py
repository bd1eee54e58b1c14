"""
Route Dependencies

Authentication, service construction and rate limiting, wired through
FastAPI's dependency injection so tests can override any of them.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from favely.config import Settings, get_settings
from favely.db import ListStorage, UserStorage, get_connection
from favely.errors import UnauthorizedError
from favely.providers import ClerkIdentityProvider, IdentityProvider
from favely.services import CollaboratorService, FeedbackService, ListService, SearchService, UserService
from favely.utils.logging_middleware import client_ip
from favely.utils.rate_limit import RateLimiter

bearer = HTTPBearer(auto_error=False)


@lru_cache
def get_identity_provider() -> IdentityProvider:
    return ClerkIdentityProvider(get_settings())


def optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Optional[str]:
    if credentials is None or not credentials.credentials:
        return None
    return identity.verify_session(credentials.credentials)


def current_user_id(user_id: Optional[str] = Depends(optional_user_id)) -> str:
    if not user_id:
        raise UnauthorizedError()
    return user_id


# Storage and services

def get_list_storage() -> ListStorage:
    return ListStorage(get_connection())


def get_user_storage() -> UserStorage:
    return UserStorage(get_connection())


def get_user_service(
    users: UserStorage = Depends(get_user_storage),
    lists: ListStorage = Depends(get_list_storage),
    identity: IdentityProvider = Depends(get_identity_provider),
    settings: Settings = Depends(get_settings),
) -> UserService:
    return UserService(users, lists, identity, settings)


def get_list_service(
    lists: ListStorage = Depends(get_list_storage),
    users: UserStorage = Depends(get_user_storage),
    user_service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
) -> ListService:
    return ListService(lists, users, user_service, settings)


def get_collaborator_service(
    lists: ListStorage = Depends(get_list_storage),
    users: UserStorage = Depends(get_user_storage),
    user_service: UserService = Depends(get_user_service),
) -> CollaboratorService:
    return CollaboratorService(lists, users, user_service)


def get_search_service(
    lists: ListStorage = Depends(get_list_storage),
    users: UserStorage = Depends(get_user_storage),
    list_service: ListService = Depends(get_list_service),
    settings: Settings = Depends(get_settings),
) -> SearchService:
    return SearchService(lists, users, list_service, max_page_size=settings.max_page_size)


def get_feedback_service(settings: Settings = Depends(get_settings)) -> FeedbackService:
    return FeedbackService(settings)


# Rate limiting

@lru_cache
def get_search_limiter() -> RateLimiter:
    settings = get_settings()
    return RateLimiter(settings.search_rate_limit, settings.rate_limit_window_seconds)


@lru_cache
def get_feedback_limiter() -> RateLimiter:
    settings = get_settings()
    return RateLimiter(settings.feedback_rate_limit, settings.rate_limit_window_seconds)


def _apply_limit(
    limiter: RateLimiter,
    request: Request,
    response: Response,
    user_id: Optional[str],
    settings: Settings,
) -> None:
    key = user_id or client_ip(request, trust_forwarded=settings.trust_proxy_headers) or "anonymous"
    status = limiter.hit(key)
    response.headers["X-RateLimit-Limit"] = str(status.limit)
    response.headers["X-RateLimit-Remaining"] = str(status.remaining)
    response.headers["X-RateLimit-Reset"] = status.reset


def search_rate_limit(
    request: Request,
    response: Response,
    user_id: Optional[str] = Depends(optional_user_id),
    limiter: RateLimiter = Depends(get_search_limiter),
    settings: Settings = Depends(get_settings),
) -> None:
    _apply_limit(limiter, request, response, user_id, settings)


def feedback_rate_limit(
    request: Request,
    response: Response,
    user_id: Optional[str] = Depends(optional_user_id),
    limiter: RateLimiter = Depends(get_feedback_limiter),
    settings: Settings = Depends(get_settings),
) -> None:
    _apply_limit(limiter, request, response, user_id, settings)
