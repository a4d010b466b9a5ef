"""
Application record and submission Pydantic schemas.

Records are a closed, versioned tagged variant: ``kind`` selects between an
individual applicant and a team submission. Every boundary that receives
records (API responses, client fetches, cache restores) validates through
``APPLICATION_LIST_ADAPTER``.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

SCHEMA_VERSION = 1


class ApplicationStatus(str, Enum):
    PENDING = "Pending"
    VERIFIED = "Verified"
    REJECTED = "Rejected"


# key -> (label, accepted content types, required)
DOCUMENT_TYPES: Dict[str, tuple] = {
    "photo": ("Photo", ("image/jpeg", "image/png"), False),
    "resume": ("Resume", ("application/pdf", "image/jpeg", "image/png"), True),
    "aadhaar": ("Aadhaar Card", ("application/pdf", "image/jpeg", "image/png"), True),
    "pan": ("PAN Card", ("application/pdf", "image/jpeg", "image/png"), True),
    "passbook": ("Bank Passbook", ("application/pdf", "image/jpeg", "image/png"), True),
}


class _RecordBase(BaseModel):
    id: str
    email: str
    phone: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.PENDING
    # document key -> external URL; the portal never keeps document bytes
    documents: Dict[str, str] = Field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    schema_version: int = SCHEMA_VERSION


class IndividualApplication(_RecordBase):
    kind: Literal["individual"] = "individual"
    full_name: str
    department: str
    address: Optional[str] = None

    @property
    def category(self) -> str:
        return self.department

    @property
    def display_name(self) -> str:
        return self.full_name


class TeamApplication(_RecordBase):
    kind: Literal["team"] = "team"
    team_name: str
    leader_name: str
    track: str
    members: List[str] = Field(default_factory=list)

    @property
    def category(self) -> str:
        return self.track

    @property
    def display_name(self) -> str:
        return f"{self.team_name} ({self.leader_name})"


ApplicationRecord = Annotated[
    Union[IndividualApplication, TeamApplication],
    Field(discriminator="kind"),
]

APPLICATION_ADAPTER = TypeAdapter(ApplicationRecord)
APPLICATION_LIST_ADAPTER = TypeAdapter(List[ApplicationRecord])


class FileAttachment(BaseModel):
    name: str = Field(..., max_length=255, example="resume.pdf")
    type: str = Field(..., example="application/pdf")
    base64: str = Field(..., description="Base64 file content without the data URL prefix.")


class IndividualSubmission(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100, example="Asha Verma")
    email: EmailStr = Field(..., example="asha@example.com")
    phone: Optional[str] = Field(None, max_length=20, example="9876543210")
    department: str = Field(..., example="Tech")
    address: Optional[str] = Field(None, max_length=500, example="12 MG Road, Pune")

    @field_validator("full_name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("full_name must not be blank")
        return v


class TeamSubmission(BaseModel):
    team_name: str = Field(..., min_length=1, max_length=100, example="Byte Builders")
    leader_name: str = Field(..., min_length=1, max_length=100, example="Ravi Kumar")
    email: EmailStr = Field(..., example="ravi@example.com")
    phone: Optional[str] = Field(None, max_length=20, example="9876543210")
    track: str = Field(..., example="Tech")
    members: List[str] = Field(default_factory=list, max_length=10)


class ApplicationSubmitRequest(BaseModel):
    """Submission envelope ``{kind, data, files}``; ``data`` is validated against the kind's model."""
    kind: Literal["individual", "team"] = "individual"
    data: Dict[str, Any]
    files: Dict[str, FileAttachment] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_data(self) -> "ApplicationSubmitRequest":
        model = IndividualSubmission if self.kind == "individual" else TeamSubmission
        try:
            self.data = model.model_validate(self.data).model_dump(mode="json")
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ValueError(problems)
        return self


class SubmitApplicationResponse(BaseModel):
    success: bool
    id: Optional[str] = None
    status: Optional[ApplicationStatus] = None
    message: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: ApplicationStatus = Field(..., example="Verified")


class DeleteApplicationResponse(BaseModel):
    success: bool
    message: str


class DashboardSummary(BaseModel):
    total: int
    pending: int
    verified: int
    rejected: int
    departments: Dict[str, int]
    recent: List[ApplicationRecord] = []


__all__ = [
    "SCHEMA_VERSION",
    "ApplicationStatus",
    "DOCUMENT_TYPES",
    "IndividualApplication",
    "TeamApplication",
    "ApplicationRecord",
    "APPLICATION_ADAPTER",
    "APPLICATION_LIST_ADAPTER",
    "FileAttachment",
    "IndividualSubmission",
    "TeamSubmission",
    "ApplicationSubmitRequest",
    "SubmitApplicationResponse",
    "StatusUpdateRequest",
    "DeleteApplicationResponse",
    "DashboardSummary",
]
