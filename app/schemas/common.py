from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel
from pydantic.config import ConfigDict


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ErrorEnvelope(BaseModel):
    error: ErrorDetail


class ProfileSummary(BaseModel):
    """Directory profile fields joined into meeting/message payloads."""

    id: UUID
    nickname: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    work_field: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def unknown(cls, user_id: UUID) -> "ProfileSummary":
        return cls(id=user_id, nickname="Unknown")
