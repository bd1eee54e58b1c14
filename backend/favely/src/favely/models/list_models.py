"""
API Data Models for lists

Pydantic models validating list, item and collaborator payloads. JSON keys
are camelCase; Python attributes are snake_case.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from favely.utils.validation import is_valid_email

LIST_CATEGORIES = ("movies", "tv-shows", "books", "restaurants", "recipes", "things-to-do", "other")

Category = Literal["movies", "tv-shows", "books", "restaurants", "recipes", "things-to-do", "other"]
Visibility = Literal["public", "unlisted", "private"]
ListType = Literal["ordered", "bullet"]
CollaboratorRole = Literal["admin", "editor", "viewer"]

MAX_ITEMS = 100


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ItemProperty(ApiModel):
    type: Literal["text", "link"] = "text"
    tag: Optional[str] = Field(None, min_length=1, max_length=50)
    value: str = Field(..., min_length=1, max_length=500)


class ChildItem(ApiModel):
    title: str = Field(..., min_length=1, max_length=200)
    tag: Optional[str] = Field(None, max_length=50)


class ListItemIn(ApiModel):
    title: str = Field(..., min_length=1, max_length=200)
    comment: Optional[str] = Field(None, max_length=1000)
    completed: bool = False
    properties: List[ItemProperty] = Field(default_factory=list)
    child_items: List[ChildItem] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _checked_alias(cls, data):
        # the task editor sends `checked` instead of `completed`
        if isinstance(data, dict) and "checked" in data and "completed" not in data:
            data = {**data, "completed": bool(data["checked"])}
        return data


class _ListFields(ApiModel):
    @model_validator(mode="before")
    @classmethod
    def _privacy_alias(cls, data):
        # older clients still send `privacy`
        if isinstance(data, dict) and "privacy" in data and "visibility" not in data:
            data = {**data, "visibility": data["privacy"]}
        return data


class ListCreate(_ListFields):
    title: str = Field(..., min_length=3, max_length=100)
    category: Category
    description: Optional[str] = Field(None, max_length=500)
    visibility: Visibility = "public"
    list_type: ListType = "ordered"
    items: List[ListItemIn] = Field(default_factory=list, max_length=MAX_ITEMS)


class ListUpdate(_ListFields):
    title: Optional[str] = Field(None, min_length=3, max_length=100)
    category: Optional[Category] = None
    description: Optional[str] = Field(None, max_length=500)
    visibility: Optional[Visibility] = None
    list_type: Optional[ListType] = None
    items: Optional[List[ListItemIn]] = Field(None, max_length=MAX_ITEMS)


class ItemUpdate(ApiModel):
    index: int = Field(..., ge=0)
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    comment: Optional[str] = Field(None, max_length=1000)
    completed: Optional[bool] = None
    properties: Optional[List[ItemProperty]] = None
    child_items: Optional[List[ChildItem]] = None


class ItemOperation(ApiModel):
    op: Literal["insert", "remove", "move", "indent", "outdent", "complete"]
    index: Optional[int] = Field(None, ge=0)
    to_index: Optional[int] = Field(None, ge=0)
    parent_index: Optional[int] = Field(None, ge=0)
    child_index: Optional[int] = Field(None, ge=0)
    completed: Optional[bool] = None
    item: Optional[ListItemIn] = None


class CollaboratorInvite(ApiModel):
    user_id: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    role: CollaboratorRole = "viewer"

    @field_validator("email")
    @classmethod
    def _email(cls, value):
        if value is not None:
            value = value.strip().lower()
            if not is_valid_email(value):
                raise ValueError("Invalid email address")
        return value

    @model_validator(mode="after")
    def _one_target(self):
        targets = [t for t in (self.user_id, self.username, self.email) if t]
        if len(targets) != 1:
            raise ValueError("Provide exactly one of userId, username or email")
        return self


class CollaboratorRoleUpdate(ApiModel):
    role: CollaboratorRole


class InvitationResponse(ApiModel):
    accept: bool
