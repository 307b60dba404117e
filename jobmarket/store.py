import logging
from collections.abc import Callable
from datetime import datetime, timezone

from pydantic import TypeAdapter

from jobmarket.lifecycle import (
    Accept,
    AttachBeforePhoto,
    Cancel,
    Complete,
    JobAction,
    Start,
    apply_action,
)
from jobmarket.models import CreateJobRequest, Identity, JobOffer, JobStatus, Role, new_job_id
from jobmarket.storage import JOBS_KEY, BlobStorage

logger = logging.getLogger(__name__)

_jobs_adapter = TypeAdapter(list[JobOffer])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    """Owns the job offer collection and keeps it in sync with its blob.

    Every mutation goes through ``dispatch`` and is followed by a full save.
    Views are computed from the current collection on each call.
    """

    def __init__(
        self,
        storage: BlobStorage,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._jobs: dict[str, JobOffer] = {}
        self.error: str | None = None

    # Queries

    def get(self, job_id: str) -> JobOffer | None:
        return self._jobs.get(job_id)

    def list_all(self) -> list[JobOffer]:
        return list(self._jobs.values())

    def list_by_status(self, status: JobStatus) -> list[JobOffer]:
        return [job for job in self._jobs.values() if job.status == status]

    @property
    def pending_jobs(self) -> list[JobOffer]:
        return self.list_by_status(JobStatus.PENDING)

    @property
    def accepted_jobs(self) -> list[JobOffer]:
        return self.list_by_status(JobStatus.ACCEPTED)

    @property
    def in_progress_jobs(self) -> list[JobOffer]:
        return self.list_by_status(JobStatus.IN_PROGRESS)

    @property
    def completed_jobs(self) -> list[JobOffer]:
        return self.list_by_status(JobStatus.COMPLETED)

    @property
    def cancelled_jobs(self) -> list[JobOffer]:
        return self.list_by_status(JobStatus.CANCELLED)

    def jobs_for_client(self, client_id: str) -> list[JobOffer]:
        return [job for job in self._jobs.values() if job.client_id == client_id]

    def jobs_for_installer(self, installer_id: str) -> list[JobOffer]:
        return [job for job in self._jobs.values() if job.installer_id == installer_id]

    def jobs_for_identity(self, identity: Identity | None) -> list[JobOffer]:
        if identity is None:
            return []
        if identity.role == Role.CLIENT:
            return self.jobs_for_client(identity.id)
        if identity.role == Role.INSTALLER:
            return self.jobs_for_installer(identity.id)
        return []

    # Actions

    def create(self, request: CreateJobRequest) -> JobOffer:
        job_id = new_job_id()
        while job_id in self._jobs:
            job_id = new_job_id()
        job = JobOffer(id=job_id, created_at=self._clock(), **request.model_dump())
        self._commit({**self._jobs, job.id: job})
        logger.info("Created job %s for client %s", job.id, job.client_id)
        return job

    def dispatch(self, job_id: str, action: JobAction) -> JobOffer | None:
        """Apply ``action`` to the job and persist the collection.

        Returns None if no job has ``job_id``. Raises InvalidTransitionError,
        leaving the collection untouched, if the job's status forbids it.
        """
        job = self._jobs.get(job_id)
        if job is None:
            return None
        updated = apply_action(job, action, self._clock())
        self._commit({**self._jobs, job_id: updated})
        logger.info("Job %s: %s (%s -> %s)", job_id, action.kind, job.status.value, updated.status.value)
        return updated

    def accept(self, job_id: str, installer_id: str) -> JobOffer | None:
        return self.dispatch(job_id, Accept(installer_id=installer_id))

    def start(self, job_id: str) -> JobOffer | None:
        return self.dispatch(job_id, Start())

    def complete(self, job_id: str, after_photo: str | None = None) -> JobOffer | None:
        return self.dispatch(job_id, Complete(after_photo=after_photo))

    def cancel(self, job_id: str) -> JobOffer | None:
        return self.dispatch(job_id, Cancel())

    def attach_before_photo(self, job_id: str, photo: str) -> JobOffer | None:
        return self.dispatch(job_id, AttachBeforePhoto(photo=photo))

    # Persistence

    def save(self) -> None:
        self._write(self._jobs)

    def _write(self, jobs: dict[str, JobOffer]) -> None:
        blob = _jobs_adapter.dump_json(list(jobs.values()), exclude_none=True)
        self._storage.set(JOBS_KEY, blob.decode())
        logger.debug("Saved %d jobs", len(jobs))

    def _commit(self, jobs: dict[str, JobOffer]) -> None:
        # in-memory state only moves once the blob is written
        self._write(jobs)
        self._jobs = jobs

    def load(self) -> None:
        """Replace the collection with the saved one.

        A blob that cannot be read or parsed, or whose records break the
        lifecycle invariants, is discarded and leaves the collection empty;
        the reason is kept in ``error``.
        """
        try:
            raw = self._storage.get(JOBS_KEY)
            if raw is None:
                self._jobs = {}
                self.error = None
                return
            jobs = _jobs_adapter.validate_json(raw)
            loaded = {}
            for job in jobs:
                if job.id in loaded:
                    raise ValueError(f"duplicate job id {job.id}")
                loaded[job.id] = job
        except ValueError as e:
            logger.warning("Discarding unreadable saved jobs: %s", e)
            self.error = f"Error parsing saved jobs: {e}"
            self._jobs = {}
            self._storage.remove(JOBS_KEY)
            return
        self._jobs = loaded
        self.error = None
        logger.debug("Loaded %d jobs", len(loaded))

    def clear_error(self) -> None:
        self.error = None
