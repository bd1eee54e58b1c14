from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from favely.models.list_models import CollaboratorInvite, CollaboratorRoleUpdate, InvitationResponse
from favely.routes.deps import current_user_id, get_collaborator_service, get_list_service, optional_user_id
from favely.services.collaborator_service import CollaboratorService
from favely.services.list_service import ListService

router = APIRouter(tags=["collaborators"])


@router.get("/lists/{list_id}/collaborators")
def list_collaborators(
    list_id: str,
    user_id: Optional[str] = Depends(optional_user_id),
    svc: CollaboratorService = Depends(get_collaborator_service),
):
    return svc.list_collaborators(list_id, user_id)


@router.post("/lists/{list_id}/collaborators", status_code=status.HTTP_201_CREATED)
def invite_collaborator(
    list_id: str,
    payload: CollaboratorInvite,
    user_id: str = Depends(current_user_id),
    svc: CollaboratorService = Depends(get_collaborator_service),
):
    return svc.invite(list_id, user_id, payload)


@router.post("/lists/{list_id}/collaborators/respond")
def respond_to_invitation(
    list_id: str,
    payload: InvitationResponse,
    user_id: str = Depends(current_user_id),
    svc: CollaboratorService = Depends(get_collaborator_service),
):
    return svc.respond(list_id, user_id, payload.accept)


@router.patch("/lists/{list_id}/collaborators/{key}")
def update_collaborator_role(
    list_id: str,
    key: str,
    payload: CollaboratorRoleUpdate,
    user_id: str = Depends(current_user_id),
    svc: CollaboratorService = Depends(get_collaborator_service),
):
    return svc.update_role(list_id, user_id, key, payload.role)


@router.delete("/lists/{list_id}/collaborators/{key}", status_code=status.HTTP_204_NO_CONTENT)
def remove_collaborator(
    list_id: str,
    key: str,
    user_id: str = Depends(current_user_id),
    svc: CollaboratorService = Depends(get_collaborator_service),
):
    svc.remove(list_id, user_id, key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/collaborations/pending")
def pending_collaborations(
    user_id: str = Depends(current_user_id),
    svc: ListService = Depends(get_list_service),
):
    return svc.pending_collaborations(user_id)
