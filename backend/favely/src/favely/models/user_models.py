"""
API Data Models for users, search and feedback
"""
from datetime import date
from typing import Literal, Optional

from pydantic import Field

from favely.models.list_models import ApiModel

Gender = Literal["male", "female", "other", "prefer_not_to_say"]
LivingStatus = Literal["alive", "deceased"]
FeedbackType = Literal["bug", "feature", "general", "other"]
SearchType = Literal["all", "lists", "users"]


class PrivacySettingsUpdate(ApiModel):
    show_date_of_birth: Optional[bool] = None
    show_gender: Optional[bool] = None
    show_living_status: Optional[bool] = None


class ProfileUpdate(ApiModel):
    bio: Optional[str] = Field(None, max_length=500)
    location: Optional[str] = Field(None, max_length=100)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    living_status: Optional[LivingStatus] = None
    privacy_settings: Optional[PrivacySettingsUpdate] = None


class FeedbackIn(ApiModel):
    type: FeedbackType
    source_page: Optional[str] = Field(None, max_length=500)
    comment: str = Field(..., min_length=1, max_length=5000)
    username: Optional[str] = Field(None, max_length=30)
