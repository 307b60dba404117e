from datetime import datetime, timezone

import pytest
from pydantic import TypeAdapter

from jobmarket.lifecycle import (
    Accept,
    AttachBeforePhoto,
    Cancel,
    Complete,
    InvalidTransitionError,
    JobAction,
    Start,
    apply_action,
    can_apply,
)
from jobmarket.models import JobOffer, JobStatus

NOW = datetime(2026, 10, 19, 12, 30, 15, 123456, tzinfo=timezone.utc)


# Fields a job has picked up by the time it reaches each status.
HISTORY = {
    JobStatus.PENDING: {},
    JobStatus.ACCEPTED: {"installer_id": "i1"},
    JobStatus.IN_PROGRESS: {"installer_id": "i1", "started_at": NOW},
    JobStatus.COMPLETED: {"installer_id": "i1", "started_at": NOW, "completed_at": NOW},
    JobStatus.CANCELLED: {},
}


def make_job(status: JobStatus = JobStatus.PENDING, **overrides) -> JobOffer:
    fields = dict(
        title="Install shelf",
        description="Two shelves",
        location="Main St 1",
        duration=2,
        payment=50,
        client_id="c1",
        status=status,
        **HISTORY[status],
    )
    fields.update(overrides)
    return JobOffer(**fields)


def test_accept_sets_installer():
    job = make_job()

    accepted = apply_action(job, Accept(installer_id="i1"), NOW)

    assert accepted.status == JobStatus.ACCEPTED
    assert accepted.installer_id == "i1"
    assert accepted.model_dump(exclude={"status", "installer_id"}) == job.model_dump(
        exclude={"status", "installer_id"}
    )


def test_apply_action_does_not_modify_original():
    job = make_job()

    apply_action(job, Accept(installer_id="i1"), NOW)

    assert job.status == JobStatus.PENDING
    assert job.installer_id is None


def test_start_sets_started_at():
    job = make_job(status=JobStatus.ACCEPTED, installer_id="i1")

    started = apply_action(job, Start(), NOW)

    assert started.status == JobStatus.IN_PROGRESS
    assert started.started_at == NOW
    assert started.completed_at is None


def test_complete_sets_completed_at_and_after_photo():
    job = make_job(status=JobStatus.IN_PROGRESS, installer_id="i1", started_at=NOW)

    completed = apply_action(job, Complete(after_photo="img2"), NOW)

    assert completed.status == JobStatus.COMPLETED
    assert completed.completed_at == NOW
    assert completed.after_photo == "img2"


def test_complete_without_photo_keeps_existing_after_photo():
    job = make_job(status=JobStatus.IN_PROGRESS, installer_id="i1", started_at=NOW, after_photo="old")

    completed = apply_action(job, Complete(), NOW)

    assert completed.after_photo == "old"


def test_cancel_keeps_history():
    job = make_job(status=JobStatus.IN_PROGRESS, installer_id="i1", started_at=NOW)

    cancelled = apply_action(job, Cancel(), NOW)

    assert cancelled.status == JobStatus.CANCELLED
    assert cancelled.installer_id == "i1"
    assert cancelled.started_at == NOW


@pytest.mark.parametrize("status", list(JobStatus))
def test_attach_before_photo_in_any_status(status):
    job = make_job(status=status)

    updated = apply_action(job, AttachBeforePhoto(photo="img1"), NOW)

    assert updated.before_photo == "img1"
    assert updated.status == status


@pytest.mark.parametrize(
    "status, action",
    [
        (JobStatus.PENDING, Start()),
        (JobStatus.PENDING, Complete()),
        (JobStatus.ACCEPTED, Accept(installer_id="i2")),
        (JobStatus.ACCEPTED, Complete()),
        (JobStatus.IN_PROGRESS, Start()),
        (JobStatus.COMPLETED, Cancel()),
        (JobStatus.COMPLETED, Start()),
        (JobStatus.CANCELLED, Accept(installer_id="i2")),
        (JobStatus.CANCELLED, Cancel()),
    ],
)
def test_invalid_transitions_are_rejected(status, action):
    job = make_job(status=status)

    assert not can_apply(job, action)
    with pytest.raises(InvalidTransitionError) as exc_info:
        apply_action(job, action, NOW)

    assert exc_info.value.job_id == job.id
    assert exc_info.value.status == status
    assert exc_info.value.action == action.kind


def test_actions_parse_from_tagged_json():
    adapter = TypeAdapter(JobAction)

    action = adapter.validate_python({"kind": "accept", "installer_id": "i1"})

    assert action == Accept(installer_id="i1")
    assert adapter.validate_python({"kind": "cancel"}) == Cancel()
