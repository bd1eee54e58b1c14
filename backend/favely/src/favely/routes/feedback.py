from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from favely.models.user_models import FeedbackIn
from favely.routes.deps import feedback_rate_limit, get_feedback_service, optional_user_id
from favely.services.feedback_service import FeedbackError, FeedbackService

router = APIRouter(tags=["feedback"])


@router.post("/feedback", dependencies=[Depends(feedback_rate_limit)])
def submit_feedback(
    payload: FeedbackIn,
    user_id: Optional[str] = Depends(optional_user_id),
    svc: FeedbackService = Depends(get_feedback_service),
):
    try:
        return svc.submit(payload, user_id)
    except FeedbackError as e:
        return JSONResponse(status_code=e.status_code, content={"success": False, "error": e.message})
