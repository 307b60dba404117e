import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status

from jobmarket.lifecycle import InvalidTransitionError
from jobmarket.models import (
    AcceptJobRequest,
    AttachPhotoRequest,
    CompleteJobRequest,
    CreateJobRequest,
    Identity,
    JobOffer,
    JobStatus,
    SessionResponse,
    SetRoleRequest,
)
from jobmarket.session import SessionStore
from jobmarket.storage import BlobStorage, FileBlobStorage
from jobmarket.store import JobStore

logger = logging.getLogger(__name__)


def create_app(storage: BlobStorage) -> FastAPI:
    session_store = SessionStore(storage)
    job_store = JobStore(storage)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Views are only valid once both stores are rehydrated
        session_store.initialize()
        job_store.load()
        logger.info("Loaded %d jobs", len(job_store.list_all()))
        yield

    app = FastAPI(title="Job Market", version="1.0.0", lifespan=lifespan)
    app.state.session_store = session_store
    app.state.job_store = job_store

    def jobs(request: Request) -> JobStore:
        return request.app.state.job_store

    def session(request: Request) -> SessionStore:
        return request.app.state.session_store

    def session_response(store: SessionStore) -> SessionResponse:
        return SessionResponse(
            identity=store.identity,
            is_authenticated=store.is_authenticated,
            role=store.role,
        )

    def run_action(request: Request, action) -> JobOffer:
        try:
            job = action(jobs(request))
        except InvalidTransitionError as e:
            raise HTTPException(status_code=409, detail=str(e))
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return job

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/session")
    async def get_session(request: Request) -> SessionResponse:
        return session_response(session(request))

    @app.put("/session")
    async def set_identity(request: Request, identity: Identity) -> SessionResponse:
        store = session(request)
        store.set_identity(identity)
        return session_response(store)

    @app.put("/session/role")
    async def set_role(request: Request, body: SetRoleRequest) -> SessionResponse:
        store = session(request)
        store.set_role(body.role)
        return session_response(store)

    @app.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
    async def sign_out(request: Request) -> None:
        session(request).clear()

    @app.get("/session/jobs")
    async def my_jobs(request: Request) -> list[JobOffer]:
        return jobs(request).jobs_for_identity(session(request).identity)

    @app.post("/jobs", status_code=status.HTTP_201_CREATED)
    async def create_job(request: Request, body: CreateJobRequest) -> JobOffer:
        return jobs(request).create(body)

    @app.get("/jobs")
    async def list_jobs(request: Request, status: JobStatus | None = None) -> list[JobOffer]:
        if status is not None:
            return jobs(request).list_by_status(status)
        return jobs(request).list_all()

    @app.get("/jobs/{job_id}")
    async def get_job(request: Request, job_id: str) -> JobOffer:
        job = jobs(request).get(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return job

    @app.post("/jobs/{job_id}/accept")
    async def accept_job(request: Request, job_id: str, body: AcceptJobRequest) -> JobOffer:
        return run_action(request, lambda s: s.accept(job_id, body.installer_id))

    @app.post("/jobs/{job_id}/start")
    async def start_job(request: Request, job_id: str) -> JobOffer:
        return run_action(request, lambda s: s.start(job_id))

    @app.post("/jobs/{job_id}/complete")
    async def complete_job(request: Request, job_id: str, body: CompleteJobRequest | None = None) -> JobOffer:
        after_photo = body.after_photo if body is not None else None
        return run_action(request, lambda s: s.complete(job_id, after_photo))

    @app.post("/jobs/{job_id}/cancel")
    async def cancel_job(request: Request, job_id: str) -> JobOffer:
        return run_action(request, lambda s: s.cancel(job_id))

    @app.post("/jobs/{job_id}/before-photo")
    async def attach_before_photo(request: Request, job_id: str, body: AttachPhotoRequest) -> JobOffer:
        return run_action(request, lambda s: s.attach_before_photo(job_id, body.photo))

    @app.get("/clients/{client_id}/jobs")
    async def client_jobs(request: Request, client_id: str) -> list[JobOffer]:
        return jobs(request).jobs_for_client(client_id)

    @app.get("/installers/{installer_id}/jobs")
    async def installer_jobs(request: Request, installer_id: str) -> list[JobOffer]:
        return jobs(request).jobs_for_installer(installer_id)

    return app


logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
app = create_app(FileBlobStorage(os.environ.get("DATA_PATH", "/data")))
