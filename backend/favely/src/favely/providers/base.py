from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class IdentityUser:
    id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> str:
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or self.username or ""


class IdentityProvider(ABC):
    """Third-party identity provider holding accounts and sessions."""

    @abstractmethod
    def verify_session(self, token: str) -> Optional[str]:
        """Return the user id owning an active session token, or None."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[IdentityUser]:
        ...

    @abstractmethod
    def get_user_list(self, user_ids: List[str]) -> List[IdentityUser]:
        ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[IdentityUser]:
        ...
