from favely.services.collaborator_service import CollaboratorService
from favely.services.feedback_service import FeedbackService
from favely.services.list_service import ListService
from favely.services.search_service import SearchService
from favely.services.user_service import UserService

__all__ = [
    "CollaboratorService",
    "FeedbackService",
    "ListService",
    "SearchService",
    "UserService",
]
