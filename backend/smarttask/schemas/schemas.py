from datetime import date
from datetime import datetime
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_validator
from pydantic.alias_generators import to_camel

from smarttask.models.enums import TaskPriority
from smarttask.models.enums import TaskStatus

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PHONE_PATTERN = r"^\+?[0-9 ()\-]{6,20}$"


class CamelModel(BaseModel):
    """Base for every DTO that crosses the wire (camelCase JSON keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ------------------------------------------------------------
# Identity
# ------------------------------------------------------------


class LoginRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1, max_length=100)


class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=100)
    confirm_password: str
    full_name: Optional[str] = Field(None, max_length=150)
    phone_number: Optional[str] = Field(None, max_length=20, pattern=PHONE_PATTERN)

    @model_validator(mode="after")
    def _passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("The password and confirmation password do not match.")
        return self


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=100)
    confirm_new_password: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "ChangePasswordRequest":
        if self.new_password != self.confirm_new_password:
            raise ValueError("The new password and confirmation password do not match.")
        return self


class UserInfo(CamelModel):
    user_id: int
    username: str
    email: str
    full_name: str = ""
    role: str = "User"
    is_active: bool = True


class AuthResponse(CamelModel):
    token: str
    refresh_token: str
    expires: datetime
    user: UserInfo


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


# ------------------------------------------------------------
# Users
# ------------------------------------------------------------


class UserProfile(CamelModel):
    id: int
    username: str
    email: str
    full_name: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    phone_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    profile_picture_url: Optional[str] = None


class UpdateProfileRequest(CamelModel):
    full_name: Optional[str] = Field(None, max_length=150)
    address_line1: Optional[str] = Field(None, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=20, pattern=PHONE_PATTERN)
    date_of_birth: Optional[date] = None
    profile_picture_url: Optional[str] = Field(None, max_length=500, pattern=r"^https?://")


# ------------------------------------------------------------
# Tasks
# ------------------------------------------------------------


class TaskCreateRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None


class TaskUpdateRequest(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None


class TaskInfo(CamelModel):
    id: int
    owner_id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime


# ------------------------------------------------------------
# AI assistant
# ------------------------------------------------------------


class AiAnswer(CamelModel):
    answer: str
    model: str


class TaskSuggestion(CamelModel):
    title: str
    description: Optional[str] = None


class TaskSuggestions(CamelModel):
    goal: str
    suggestions: List[TaskSuggestion]
    model: str


# ------------------------------------------------------------
# Admin
# ------------------------------------------------------------


class PublicServiceEntry(CamelModel):
    service_name: str = Field(..., min_length=1)
    method_name: str = Field(..., min_length=1)
