"""
List Routes

CRUD, copies, pins, shared/collaboration views and item editing for lists.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Response, status

from favely.models.list_models import Category, ItemOperation, ItemUpdate, ListCreate, ListUpdate, Visibility
from favely.routes.deps import current_user_id, get_list_service, optional_user_id
from favely.services.list_service import ListService
from favely.utils.pagination import Page

router = APIRouter(prefix="/lists", tags=["lists"])

SortOrder = Literal["newest", "oldest"]


def page_response(page: Page) -> dict:
    return {"lists": page.items, "nextCursor": page.next_cursor, "hasMore": page.has_more}


@router.get("")
def my_lists(
    category: Optional[Category] = None,
    visibility: Optional[Visibility] = None,
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
    sort: SortOrder = "newest",
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return page_response(svc.my_lists(user_id, category, visibility, cursor, limit, sort))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_list(
    payload: ListCreate,
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return svc.create_list(user_id, payload)


@router.get("/pinned")
def pinned_lists(
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return page_response(svc.pinned_lists(user_id, cursor, limit))


@router.get("/shared")
def shared_lists(
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return page_response(svc.shared_lists(user_id, cursor, limit))


@router.get("/collab")
def collab_lists(
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return page_response(svc.collab_lists(user_id, cursor, limit))


@router.get("/{list_id}")
def get_list(
    list_id: str,
    user_id: Optional[str] = Depends(optional_user_id),
    svc: ListService = Depends(get_list_service),
):
    return svc.get_list(list_id, user_id)


@router.put("/{list_id}")
def replace_list(
    list_id: str,
    payload: ListCreate,
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return svc.replace_list(list_id, user_id, payload)


@router.patch("/{list_id}")
def patch_list(
    list_id: str,
    payload: ListUpdate,
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return svc.patch_list(list_id, user_id, payload)


@router.delete("/{list_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_list(
    list_id: str,
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    svc.delete_list(list_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{list_id}/copy", status_code=status.HTTP_201_CREATED)
def copy_list(
    list_id: str,
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return svc.copy_list(list_id, user_id)


@router.post("/{list_id}/pin")
def pin_list(
    list_id: str,
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return svc.pin_list(list_id, user_id)


@router.delete("/{list_id}/pin")
def unpin_list(
    list_id: str,
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return svc.unpin_list(list_id, user_id)


@router.patch("/{list_id}/items")
def update_item(
    list_id: str,
    payload: ItemUpdate,
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return svc.update_item(list_id, user_id, payload)


@router.post("/{list_id}/items/operations")
def edit_items(
    list_id: str,
    payload: ItemOperation,
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return svc.edit_items(list_id, user_id, payload)
