from typing import Optional

from fastapi import APIRouter, Depends

from favely.models.user_models import SearchType
from favely.routes.deps import get_search_service, optional_user_id, search_rate_limit
from favely.services.search_service import SearchService

router = APIRouter(tags=["search"])


@router.get("/search", dependencies=[Depends(search_rate_limit)])
def search(
    q: Optional[str] = None,
    type: SearchType = "all",
    page: int = 1,
    limit: int = 20,
    user_id: Optional[str] = Depends(optional_user_id),
    svc: SearchService = Depends(get_search_service),
):
    return svc.search(q, type=type, page=page, limit=limit, viewer_id=user_id)
