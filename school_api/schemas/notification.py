from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from school_api.schemas.common import ORMModel
from school_api.schemas.enums import NotificationPriority, NotificationType, UserRole


class NotificationCreateRequest(BaseModel):
    """
    Targets are the union of explicit users, users holding one of the roles
    in the school, and the parents of a class.
    """
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    type: NotificationType = NotificationType.GENERAL
    priority: NotificationPriority = NotificationPriority.NORMAL
    data: Optional[Dict[str, Any]] = None
    action_url: Optional[str] = Field(default=None, max_length=500)
    user_ids: List[int] = Field(default_factory=list)
    roles: List[UserRole] = Field(default_factory=list)
    class_id: Optional[int] = None
    school_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_targets(self) -> "NotificationCreateRequest":
        if not self.user_ids and not self.roles and self.class_id is None:
            raise ValueError("At least one of user_ids, roles or class_id is required")
        return self


class NotificationResponse(ORMModel):
    id: int
    user_id: int
    school_id: Optional[int] = None
    title: str
    content: str
    type: NotificationType
    priority: NotificationPriority
    data: Optional[Dict[str, Any]] = None
    action_url: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
