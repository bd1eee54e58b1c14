"""
User Routes

Profiles, user lookup and search, and follow relationships. Fixed paths are
declared before `/{username}` so they are not captured by it.
"""

from typing import Any, Literal, Optional

from fastapi import APIRouter, Body, Depends

from favely.models.list_models import Category
from favely.models.user_models import ProfileUpdate
from favely.routes.deps import current_user_id, get_list_service, get_user_service, optional_user_id
from favely.routes.lists import page_response
from favely.services.list_service import ListService
from favely.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me")
def me(
    user_id: Optional[str] = Depends(optional_user_id),
    svc: UserService = Depends(get_user_service),
):
    return svc.me(user_id)


@router.patch("/me")
def update_me(
    payload: ProfileUpdate,
    user_id: str = Depends(current_user_id),
    svc: UserService = Depends(get_user_service),
):
    return svc.update_profile(user_id, payload)


@router.post("/batch")
def batch_users(
    payload: Any = Body(None),
    svc: UserService = Depends(get_user_service),
):
    user_ids = payload.get("userIds") if isinstance(payload, dict) else None
    return svc.batch_users(user_ids)


@router.get("/search")
def search_users(
    q: Optional[str] = None,
    user_id: Optional[str] = Depends(optional_user_id),
    svc: UserService = Depends(get_user_service),
):
    return svc.search_users(q, user_id)


@router.get("/followers")
def followers(
    page: int = 1,
    limit: int = 20,
    user_id: str = Depends(current_user_id),
    svc: UserService = Depends(get_user_service),
):
    return svc.followers(user_id, page, limit)


@router.get("/following")
def following(
    page: int = 1,
    limit: int = 20,
    user_id: str = Depends(current_user_id),
    svc: UserService = Depends(get_user_service),
):
    return svc.following(user_id, page, limit)


@router.get("/{username}")
def profile(
    username: str,
    user_id: Optional[str] = Depends(optional_user_id),
    svc: UserService = Depends(get_user_service),
):
    return svc.profile(username, user_id)


@router.get("/{username}/lists")
def user_lists(
    username: str,
    category: Optional[Category] = None,
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
    sort: Literal["newest", "oldest"] = "newest",
    user_id: Optional[str] = Depends(optional_user_id),
    svc: ListService = Depends(get_list_service),
):
    return page_response(svc.user_lists(username, user_id, category, cursor, limit, sort))


@router.get("/{username}/following")
def following_of(username: str, svc: UserService = Depends(get_user_service)):
    return svc.following_of(username)


@router.get("/{username}/follow/status")
def follow_status(
    username: str,
    user_id: Optional[str] = Depends(optional_user_id),
    svc: UserService = Depends(get_user_service),
):
    return svc.follow_status(user_id, username)


@router.post("/{username}/follow")
def follow(
    username: str,
    user_id: str = Depends(current_user_id),
    svc: UserService = Depends(get_user_service),
):
    return svc.follow(user_id, username)


@router.delete("/{username}/follow")
def unfollow(
    username: str,
    user_id: str = Depends(current_user_id),
    svc: UserService = Depends(get_user_service),
):
    return svc.unfollow(user_id, username)
