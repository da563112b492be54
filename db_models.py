from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, field_validator


class LinkPrecedence(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class Contact(BaseModel):
    id: int
    email: Optional[str] = None
    phoneNumber: Optional[str] = None
    linkedId: Optional[int] = None
    linkPrecedence: LinkPrecedence
    createdAt: datetime
    updatedAt: datetime
    deletedAt: Optional[datetime] = None

    @property
    def is_primary(self) -> bool:
        return self.linkPrecedence == LinkPrecedence.PRIMARY

    @property
    def root_id(self) -> int:
        """Id of the primary this contact belongs to."""
        if self.is_primary:
            return self.id
        return self.linkedId


class IdentifyRequest(BaseModel):
    email: Optional[str] = None
    phoneNumber: Optional[str] = None

    @field_validator("phoneNumber", mode="before")
    @classmethod
    def _phone_as_string(cls, value):
        # clients commonly send phone numbers as JSON numbers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class ContactResponse(BaseModel):
    primaryContactId: int
    emails: List[str]
    phoneNumbers: List[str]
    secondaryContactIds: List[int]
    primaryContatctId: Optional[int] = None


class FinalResponse(BaseModel):
    contact: ContactResponse


class ErrorResponse(BaseModel):
    detail: str
    code: str
