import secrets
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Role(str, Enum):
    CLIENT = "client"
    INSTALLER = "installer"
    NONE = "none"


class JobStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Fields a job must carry, and must not carry, in each status. Cancelled jobs
# keep whatever history they reached before cancellation.
_REQUIRED_FIELDS = {
    JobStatus.PENDING: (),
    JobStatus.ACCEPTED: ("installer_id",),
    JobStatus.IN_PROGRESS: ("installer_id", "started_at"),
    JobStatus.COMPLETED: ("installer_id", "started_at", "completed_at"),
    JobStatus.CANCELLED: (),
}
_FORBIDDEN_FIELDS = {
    JobStatus.PENDING: ("installer_id", "started_at", "completed_at"),
    JobStatus.ACCEPTED: ("started_at", "completed_at"),
    JobStatus.IN_PROGRESS: ("completed_at",),
    JobStatus.COMPLETED: (),
    JobStatus.CANCELLED: ("completed_at",),
}


def new_job_id() -> str:
    return f"job_{secrets.token_hex(8)}"


class Identity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    role: Role = Role.NONE


class JobOffer(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=new_job_id)
    title: str
    description: str
    location: str
    duration: float = Field(gt=0)
    payment: float = Field(ge=0)
    status: JobStatus = JobStatus.PENDING
    client_id: str
    installer_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    scheduled_date: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    before_photo: str | None = None
    after_photo: str | None = None

    @model_validator(mode="after")
    def check_lifecycle_fields(self) -> "JobOffer":
        for name in _REQUIRED_FIELDS[self.status]:
            if getattr(self, name) is None:
                raise ValueError(f"{self.status.value} job is missing {name}")
        for name in _FORBIDDEN_FIELDS[self.status]:
            if getattr(self, name) is not None:
                raise ValueError(f"{self.status.value} job cannot have {name}")
        if self.started_at is not None and self.installer_id is None:
            raise ValueError("started job is missing installer_id")
        return self


class CreateJobRequest(BaseModel):
    title: str
    description: str
    location: str
    duration: float = Field(gt=0)
    payment: float = Field(ge=0)
    client_id: str
    scheduled_date: datetime | None = None


class AcceptJobRequest(BaseModel):
    installer_id: str


class CompleteJobRequest(BaseModel):
    after_photo: str | None = None


class AttachPhotoRequest(BaseModel):
    photo: str


class SetRoleRequest(BaseModel):
    role: Role


class SessionResponse(BaseModel):
    identity: Identity | None = None
    is_authenticated: bool
    role: Role
