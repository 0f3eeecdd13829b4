"""FastAPI application exposing stored repositories and the fetch trigger."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, List, Optional

from fastapi import Depends, FastAPI, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..models import Repository
from ..pipeline import Pipeline
from ..stores import RepositoryStore, StoreError

API_PREFIX = "/api/v1/repository"


class RepositoryPayload(BaseModel):
    name: str
    url: str
    open_issue_count: Optional[str] = None
    closed_issue_count: Optional[str] = None
    commit_count: Optional[str] = None
    original_codebase_size: Optional[str] = None
    library_codebase_size: Optional[str] = None
    repository_type: Optional[str] = None
    primary_language: Optional[str] = None
    creation_date: Optional[str] = None
    stargazer_count: Optional[str] = None
    license_info: Optional[str] = None
    latest_release: Optional[str] = None


class RepositoryPatch(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    open_issue_count: Optional[str] = None
    closed_issue_count: Optional[str] = None
    commit_count: Optional[str] = None
    original_codebase_size: Optional[str] = None
    library_codebase_size: Optional[str] = None
    repository_type: Optional[str] = None
    primary_language: Optional[str] = None
    creation_date: Optional[str] = None
    stargazer_count: Optional[str] = None
    license_info: Optional[str] = None
    latest_release: Optional[str] = None


class RepositoryResponse(RepositoryPayload):
    id: int


class FetchResponse(BaseModel):
    count: int
    repositories: List[RepositoryResponse]


class HealthResponse(BaseModel):
    status: str


def create_app(
    store_factory: Callable[[], RepositoryStore],
    pipeline_factory: Callable[[RepositoryStore], Pipeline],
) -> FastAPI:
    """Create the FastAPI application over a store and a pipeline factory."""

    app = FastAPI(title="repometer", version="1.0.0")
    store = store_factory()
    fetch_lock = threading.Lock()

    async def get_store() -> RepositoryStore:
        return store

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get(API_PREFIX, response_model=List[RepositoryResponse])
    async def list_repositories(
        repositories: RepositoryStore = Depends(get_store),
    ) -> List[RepositoryResponse]:
        return [_to_response(item) for item in repositories.list()]

    @app.post(API_PREFIX, response_model=RepositoryResponse, status_code=201)
    async def create_repository(
        payload: RepositoryPayload,
        repositories: RepositoryStore = Depends(get_store),
    ) -> RepositoryResponse:
        created = repositories.create(Repository(**payload.model_dump()))
        return _to_response(created)

    # Registered before the id routes so "fetch" is not parsed as an id.
    @app.get(f"{API_PREFIX}/fetch", response_model=FetchResponse)
    async def fetch_repositories(
        count: int = Query(..., ge=1),
        repositories: RepositoryStore = Depends(get_store),
    ) -> FetchResponse:
        pipeline = pipeline_factory(repositories)

        def run_exclusive() -> List[Repository]:
            # Runs share the scratch workspace and module cache; one at a time.
            with fetch_lock:
                return pipeline.run(count)

        loop = asyncio.get_running_loop()
        processed = await loop.run_in_executor(None, run_exclusive)
        return FetchResponse(
            count=len(processed),
            repositories=[_to_response(item) for item in processed],
        )

    @app.get(f"{API_PREFIX}/{{repository_id}}", response_model=RepositoryResponse)
    async def get_repository(
        repository_id: int,
        repositories: RepositoryStore = Depends(get_store),
    ) -> RepositoryResponse:
        found = repositories.get_by_id(repository_id)
        if found is None:
            raise StoreError(f"Repository with id {repository_id} does not exist")
        return _to_response(found)

    @app.patch(f"{API_PREFIX}/{{repository_id}}", response_model=RepositoryResponse)
    async def update_repository(
        repository_id: int,
        payload: RepositoryPatch,
        repositories: RepositoryStore = Depends(get_store),
    ) -> RepositoryResponse:
        changes = payload.model_dump(exclude_unset=True)
        updated = repositories.update_fields(repository_id, **changes)
        return _to_response(updated)

    @app.delete(f"{API_PREFIX}/{{repository_id}}", response_model=RepositoryResponse)
    async def delete_repository(
        repository_id: int,
        repositories: RepositoryStore = Depends(get_store),
    ) -> RepositoryResponse:
        return _to_response(repositories.delete(repository_id))

    @app.exception_handler(StoreError)
    async def store_error_handler(_: Any, exc: StoreError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def _to_response(repository: Repository) -> RepositoryResponse:
    return RepositoryResponse(**repository.to_dict())


def run_service(
    app: FastAPI, host: str = "0.0.0.0", port: int = 8080
) -> None:  # pragma: no cover - integration path
    import uvicorn

    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run_service"]
