from typing import Any, Dict, Optional

from loguru import logger

from favely.db.list_storage import ListStorage, matches_collaborator
from favely.db.user_storage import UserStorage
from favely.errors import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError
from favely.models.list_models import CollaboratorInvite
from favely.services import permissions
from favely.services.list_service import serialize_collaborator
from favely.services.user_service import UserService
from favely.utils.utils import utcnow


class CollaboratorService:
    """Invitations, roles and membership of list collaborators."""

    def __init__(self, lists: ListStorage, users: UserStorage, user_service: UserService):
        self.lists = lists
        self.users = users
        self.user_service = user_service

    def _readable(self, list_id: str, viewer_id: Optional[str]) -> dict:
        doc = self.lists.get(list_id)
        if doc is None or not permissions.can_view(doc, viewer_id):
            raise NotFoundError("List not found")
        return doc

    @staticmethod
    def _find(doc: dict, key: str) -> Optional[dict]:
        for collab in doc.get("collaborators") or []:
            if matches_collaborator(collab, key):
                return collab
        return None

    def _entry(self, collab: dict, profiles: dict, include_email: bool = True) -> Dict[str, Any]:
        profile = profiles.get(collab.get("clerkId"), {})
        return {
            **serialize_collaborator(collab, include_email=include_email),
            "username": profile.get("username"),
            "displayName": profile.get("displayName"),
            "imageUrl": profile.get("imageUrl"),
        }

    def list_collaborators(self, list_id: str, viewer_id: Optional[str]) -> Dict[str, Any]:
        doc = self._readable(list_id, viewer_id)
        is_member = permissions.role_of(doc, viewer_id) is not None
        collaborators = [
            c for c in doc.get("collaborators") or []
            if is_member or c.get("status") == permissions.ACCEPTED
        ]
        owner_id = doc["owner"]["clerkId"]
        profiles = self.user_service.owner_profiles(
            [owner_id] + [c["clerkId"] for c in collaborators if c.get("clerkId")]
        )
        owner = {
            "clerkId": owner_id,
            "email": None,
            "role": permissions.OWNER,
            "status": permissions.ACCEPTED,
            "invitedAt": None,
            "acceptedAt": None,
            "isEmailInvite": False,
            "username": profiles.get(owner_id, {}).get("username") or doc["owner"].get("username"),
            "displayName": profiles.get(owner_id, {}).get("displayName"),
            "imageUrl": profiles.get(owner_id, {}).get("imageUrl"),
        }
        entries = [owner] + [self._entry(c, profiles, include_email=is_member) for c in collaborators]
        return {"collaborators": entries, "total": len(entries)}

    def invite(self, list_id: str, actor_id: str, invite: CollaboratorInvite) -> Dict[str, Any]:
        doc = self._readable(list_id, actor_id)
        actor_role = permissions.role_of(doc, actor_id)
        if not permissions.can_manage_collaborators(doc, actor_id):
            raise ForbiddenError("Only the owner or an admin can invite collaborators")
        if not permissions.can_assign_role(actor_role, None, invite.role):
            raise ForbiddenError(f"You cannot invite collaborators as {invite.role}")

        target = None
        if invite.user_id:
            target = self.user_service.require_user(invite.user_id)
        elif invite.username:
            target = self.user_service.find_by_username(invite.username)
        else:
            target = self.users.get_by_email(invite.email)

        now = utcnow()
        if target is not None:
            if target["clerkId"] == doc["owner"]["clerkId"]:
                raise ConflictError("The owner is already a member of this list")
            key = target["clerkId"]
            existing = self._find(doc, key) or (target.get("email") and self._find(doc, target["email"]))
            status = permissions.ACCEPTED if self.users.is_following(actor_id, key) else permissions.PENDING
            collaborator = {
                "clerkId": key,
                "email": target.get("email"),
                "role": invite.role,
                "status": status,
                "invitedAt": now,
                "acceptedAt": now if status == permissions.ACCEPTED else None,
                "invitedBy": actor_id,
                "_isEmailInvite": False,
            }
        else:
            key = invite.email
            existing = self._find(doc, key)
            collaborator = {
                "clerkId": None,
                "email": invite.email,
                "role": invite.role,
                "status": permissions.PENDING,
                "invitedAt": now,
                "acceptedAt": None,
                "invitedBy": actor_id,
                "_isEmailInvite": True,
            }

        if existing:
            if existing.get("status") != permissions.REJECTED:
                raise ConflictError("User is already a collaborator on this list")
            # a rejected invitation may be sent again
            self.lists.remove_collaborator(doc["_id"], existing.get("clerkId") or existing.get("email"))

        self.lists.add_collaborator(doc["_id"], collaborator)
        logger.bind(list_id=list_id, actor=actor_id, target=key, status=collaborator["status"]).info(
            "✔ [Collaborators] Collaborator invited"
        )
        profiles = self.user_service.owner_profiles([key]) if collaborator["clerkId"] else {}
        return self._entry(collaborator, profiles)

    def update_role(self, list_id: str, actor_id: str, key: str, role: str) -> Dict[str, Any]:
        doc = self._readable(list_id, actor_id)
        target = self._find(doc, key)
        if target is None:
            raise NotFoundError("Collaborator not found")
        actor_role = permissions.role_of(doc, actor_id)
        if not permissions.can_assign_role(actor_role, target.get("role"), role):
            raise ForbiddenError("You do not have permission to change this collaborator's role")
        self.lists.set_collaborator_fields(doc["_id"], key, {"role": role})
        target["role"] = role
        logger.bind(list_id=list_id, actor=actor_id, target=key, role=role).info("✔ [Collaborators] Role updated")
        profiles = self.user_service.owner_profiles([target["clerkId"]]) if target.get("clerkId") else {}
        return self._entry(target, profiles)

    def respond(self, list_id: str, user_id: str, accept: bool) -> Dict[str, Any]:
        doc = self.lists.get(list_id)
        if doc is None:
            raise NotFoundError("List not found")
        user = self.user_service.resolve_user(user_id)
        if user is None:
            raise UnauthorizedError("User not found")

        invitation = self._find(doc, user_id)
        key = user_id
        if invitation is None and user.get("email"):
            invitation = self._find(doc, user["email"])
            if invitation is not None and invitation.get("clerkId"):
                # addressed to another account sharing the address
                invitation = None
            key = user["email"]
        if invitation is None:
            raise NotFoundError("Invitation not found")
        if invitation.get("status") != permissions.PENDING:
            raise ConflictError("Invitation has already been answered")

        status = permissions.ACCEPTED if accept else permissions.REJECTED
        fields = {"status": status, "acceptedAt": utcnow() if accept else None}
        if invitation.get("_isEmailInvite"):
            fields.update({"clerkId": user_id, "_isEmailInvite": False})
        self.lists.set_collaborator_fields(doc["_id"], key, fields)
        logger.bind(list_id=list_id, user_id=user_id, status=status).info("✔ [Collaborators] Invitation answered")
        return {"listId": str(doc["_id"]), "status": status, "role": invitation.get("role")}

    def remove(self, list_id: str, actor_id: str, key: str) -> None:
        doc = self.lists.get(list_id)
        if doc is None:
            raise NotFoundError("List not found")
        target = self._find(doc, key)
        if target is None:
            raise NotFoundError("Collaborator not found")
        is_self = bool(target.get("clerkId")) and target["clerkId"] == actor_id
        if not is_self and not permissions.can_view(doc, actor_id):
            raise NotFoundError("List not found")
        actor_role = permissions.role_of(doc, actor_id)
        if not permissions.can_remove(actor_role, target.get("role"), is_self):
            raise ForbiddenError("You do not have permission to remove this collaborator")
        self.lists.remove_collaborator(doc["_id"], key)
        logger.bind(list_id=list_id, actor=actor_id, target=key).info("✔ [Collaborators] Collaborator removed")
