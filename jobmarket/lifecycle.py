"""Job offer lifecycle: the action variants and the reducer that applies them.

pending -> accepted -> in_progress -> completed, with cancelled reachable from
every non-terminal status. Each action touches only the fields it defines.
"""
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from jobmarket.models import JobOffer, JobStatus


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)


class Accept(_Action):
    kind: Literal["accept"] = "accept"
    installer_id: str


class Start(_Action):
    kind: Literal["start"] = "start"


class Complete(_Action):
    kind: Literal["complete"] = "complete"
    after_photo: str | None = None


class Cancel(_Action):
    kind: Literal["cancel"] = "cancel"


class AttachBeforePhoto(_Action):
    kind: Literal["attach_before_photo"] = "attach_before_photo"
    photo: str


JobAction = Annotated[
    Union[Accept, Start, Complete, Cancel, AttachBeforePhoto],
    Field(discriminator="kind"),
]

# None means the action is allowed from any status.
ALLOWED_SOURCES: dict[str, frozenset[JobStatus] | None] = {
    "accept": frozenset({JobStatus.PENDING}),
    "start": frozenset({JobStatus.ACCEPTED}),
    "complete": frozenset({JobStatus.IN_PROGRESS}),
    "cancel": frozenset({JobStatus.PENDING, JobStatus.ACCEPTED, JobStatus.IN_PROGRESS}),
    "attach_before_photo": None,
}


class InvalidTransitionError(ValueError):
    def __init__(self, job_id: str, status: JobStatus, action: str) -> None:
        self.job_id = job_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} job {job_id} in status {status.value}")


def can_apply(job: JobOffer, action: JobAction) -> bool:
    allowed = ALLOWED_SOURCES[action.kind]
    return allowed is None or job.status in allowed


def apply_action(job: JobOffer, action: JobAction, now: datetime) -> JobOffer:
    """Return a new JobOffer with ``action`` applied.

    Raises InvalidTransitionError if the job's status does not permit the action.
    """
    if not can_apply(job, action):
        raise InvalidTransitionError(job.id, job.status, action.kind)

    if isinstance(action, Accept):
        updates = {"status": JobStatus.ACCEPTED, "installer_id": action.installer_id}
    elif isinstance(action, Start):
        updates = {"status": JobStatus.IN_PROGRESS, "started_at": now}
    elif isinstance(action, Complete):
        updates = {"status": JobStatus.COMPLETED, "completed_at": now}
        if action.after_photo is not None:
            updates["after_photo"] = action.after_photo
    elif isinstance(action, Cancel):
        # installer and timestamps stay as a historical record
        updates = {"status": JobStatus.CANCELLED}
    elif isinstance(action, AttachBeforePhoto):
        updates = {"before_photo": action.photo}
    else:
        raise TypeError(f"Unknown job action: {action!r}")

    return job.model_copy(update=updates)
