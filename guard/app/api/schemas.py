"""Request and response schemas for the public and admin APIs.

Create schemas expose ``target()`` so the abuse-control pipeline can
check existence and correlate duplicates before the write happens.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from guard.app.services.stores import TargetIdentity

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
UK_POSTCODE_PATTERN = r"(?i)^[A-Z]{1,2}[0-9][A-Z0-9]? ?[0-9][A-Z]{2}$"

IssueType = Literal[
    "Incorrect information",
    "Event/shop no longer exists",
    "Duplicate entry",
    "Spam",
    "Other",
]


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    # Forms post empty strings for untouched optional inputs
    if isinstance(v, str) and not v.strip():
        return None
    return v


class ReportCreate(BaseModel):
    """Schema for reporting a problem with an existing event or shop."""

    entity_type: Literal["Event", "Shop"]
    entity_id: str = Field(..., min_length=1)
    issue_type: IssueType
    description: str = Field(
        ...,
        min_length=10,
        max_length=2000,
        description="What is wrong (10-2000 characters)",
    )
    reporter_email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    honeypot: Optional[str] = None

    normalize_email = field_validator("reporter_email", mode="before")(_blank_to_none)

    def target(self) -> TargetIdentity:
        return TargetIdentity.for_report(self.entity_type, self.entity_id)


class _SubmissionBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    address: str = Field(..., min_length=1, max_length=500)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    website: Optional[str] = Field(None, pattern=r"^https?://\S+$")
    submitter_email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    submitter_name: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=1000)
    honeypot: Optional[str] = None

    normalize_optional = field_validator("website", "submitter_email", mode="before")(
        _blank_to_none
    )

    def target(self) -> TargetIdentity:
        return TargetIdentity.for_submission(self.entity_type, self.name, self.address)

    def record_fields(self) -> dict:
        """Columns for the pending submission row; the rest goes into ``data``."""
        data = self.model_dump(
            mode="json",
            exclude={"entity_type", "name", "address", "submitter_email", "honeypot"},
            exclude_none=True,
        )
        return {
            "entity_type": self.entity_type,
            "name": self.name,
            "address": self.address,
            "submitter_email": self.submitter_email,
            "data": data,
            "status": "pending",
        }


class EventSubmission(_SubmissionBase):
    entity_type: Literal["Event"]
    start_date: datetime
    end_date: Optional[datetime] = None
    location: str = Field(..., min_length=1, max_length=200)


class ShopSubmission(_SubmissionBase):
    entity_type: Literal["Shop"]
    city: str = Field(..., min_length=1, max_length=100)
    postcode: str = Field(..., pattern=UK_POSTCODE_PATTERN)
    phone: Optional[str] = Field(None, max_length=50)


SubmissionCreate = Annotated[
    Union[EventSubmission, ShopSubmission], Field(discriminator="entity_type")
]
submission_adapter: TypeAdapter[Union[EventSubmission, ShopSubmission]] = TypeAdapter(
    SubmissionCreate
)


def parse_submission(payload) -> Union[EventSubmission, ShopSubmission]:
    """Validate a raw submission body against the matching entity schema."""
    return submission_adapter.validate_python(payload)


class EventCreate(BaseModel):
    """Schema for an admin creating an event."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    start_date: datetime
    end_date: Optional[datetime] = None
    location: str = Field(..., min_length=1, max_length=200)
    address: str = Field(..., min_length=1, max_length=300)
    city: Optional[str] = Field(None, max_length=100)
    postcode: Optional[str] = Field(None, pattern=UK_POSTCODE_PATTERN)
    website: Optional[str] = Field(None, pattern=r"^https?://\S+$")

    normalize_website = field_validator("website", mode="before")(_blank_to_none)

    def target(self) -> TargetIdentity:
        # A new event has no existing resource and no duplicate correlation
        return TargetIdentity()

    @field_validator("end_date")
    @classmethod
    def validate_date_range(cls, end_date: Optional[datetime], info) -> Optional[datetime]:
        start_date = info.data.get("start_date")
        if end_date is None or start_date is None:
            return end_date
        if (end_date.tzinfo is None) != (start_date.tzinfo is None):
            raise ValueError("start_date and end_date must both carry a timezone or neither")
        if end_date < start_date:
            raise ValueError("end_date must be >= start_date")
        return end_date


class EventUpdate(BaseModel):
    """Schema for an admin updating an event; only sent fields change."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, min_length=1, max_length=300)
    city: Optional[str] = Field(None, max_length=100)
    postcode: Optional[str] = Field(None, pattern=UK_POSTCODE_PATTERN)
    website: Optional[str] = Field(None, pattern=r"^https?://\S+$")


class ShopCreate(BaseModel):
    """Schema for an admin creating a shop."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    address: str = Field(..., min_length=1, max_length=300)
    city: str = Field(..., min_length=1, max_length=100)
    postcode: str = Field(..., pattern=UK_POSTCODE_PATTERN)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    website: Optional[str] = Field(None, pattern=r"^https?://\S+$")
    phone: Optional[str] = Field(None, max_length=50)

    normalize_website = field_validator("website", mode="before")(_blank_to_none)

    @field_validator("postcode")
    @classmethod
    def uppercase_postcode(cls, postcode: str) -> str:
        return postcode.upper()

    def target(self) -> TargetIdentity:
        return TargetIdentity()


class ShopResponse(BaseModel):
    id: str
    name: str
    description: Optional[str]
    address: str
    city: str
    postcode: str
    website: Optional[str]
    phone: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EventResponse(BaseModel):
    id: str
    name: str
    description: Optional[str]
    start_date: datetime
    end_date: Optional[datetime]
    location: str
    address: str
    city: Optional[str]
    postcode: Optional[str]
    website: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
