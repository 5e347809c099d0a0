from datetime import datetime
import logging
from typing import Annotated, Any

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from cognipath.auth import IdentityProvider, StaticTokenIdentityProvider
from cognipath.blob_store import BlobStore, LocalBlobStore, create_blob_store
from cognipath.config import Settings, get_settings
from cognipath.db import get_engine
from cognipath.errors import (
    AuthFailure,
    CogniPathError,
    DecodeFailure,
    DocumentNotFound,
    ExtractionFailure,
    GenerationFailure,
    GenerationTimeout,
    PathNotFound,
    PersistenceFailure,
    StepConflict,
    ValidationFailure,
)
from cognipath.llm import CompletionClient, OpenAIChatClient
from cognipath.logging_config import configure_logging
from cognipath.progress import ProgressController, ProgressState
from cognipath.services.decomposition.pipeline import (
    PDF_CONTENT_TYPE,
    generate_path,
    generate_path_from_pdf,
)
from cognipath.services.decomposition.types import SourceDocument
from cognipath.store import LearningPath, PathStore

logger = logging.getLogger(__name__)

app = FastAPI(title="CogniPath API", version="0.1.0")

_bearer = HTTPBearer(auto_error=False)

_STATUS_BY_ERROR: list[tuple[type[CogniPathError], int]] = [
    (AuthFailure, 401),
    (ValidationFailure, 400),
    (ExtractionFailure, 422),
    (GenerationTimeout, 504),
    (GenerationFailure, 502),
    (DecodeFailure, 502),
    (PersistenceFailure, 503),
    (StepConflict, 409),
    (PathNotFound, 404),
    (DocumentNotFound, 404),
]

_PDF_CONTENT_TYPES = {PDF_CONTENT_TYPE, "application/x-pdf", "application/octet-stream"}


class GenerateFromTextRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class AdvanceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    from_step: int | None = Field(default=None, ge=0)


@app.on_event("startup")
def startup() -> None:
    configure_logging(get_settings().log_level)
    get_engine()


@app.exception_handler(CogniPathError)
def handle_cognipath_error(request: Request, exc: CogniPathError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in _STATUS_BY_ERROR if isinstance(exc, error_type)),
        500,
    )
    content: dict[str, Any] = {"detail": str(exc), "error": exc.kind}
    if isinstance(exc, StepConflict):
        content["current_step"] = exc.current_step

    if status_code >= 500:
        logger.error("%s %s failed kind=%s error=%s", request.method, request.url.path, exc.kind, exc)
    else:
        logger.info("%s %s rejected kind=%s error=%s", request.method, request.url.path, exc.kind, exc)

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthFailure) else None
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def get_completion_client() -> CompletionClient:
    settings = get_settings()
    return OpenAIChatClient(
        base_url=settings.openai_base_url,
        api_key=settings.openai_api_key,
        default_model=settings.model,
        fallback_model=settings.fallback_model,
        temperature=settings.temperature,
        timeout_seconds=settings.llm_timeout_seconds,
    )


def get_path_store() -> PathStore:
    return PathStore(get_engine())


def get_blob_store() -> BlobStore:
    settings = get_settings()
    return create_blob_store(
        backend=settings.blob_backend,
        blob_dir=settings.blob_dir,
        base_url=settings.blob_base_url,
        s3_bucket=settings.s3_bucket,
        s3_region=settings.s3_region,
        link_ttl_seconds=settings.link_ttl_seconds,
    )


def get_identity_provider() -> IdentityProvider:
    return StaticTokenIdentityProvider(get_settings().auth_tokens)


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    identity_provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
) -> str:
    if credentials is None or not credentials.credentials.strip():
        raise AuthFailure("Not authenticated")

    user_id = identity_provider.resolve(credentials.credentials.strip())
    if not user_id:
        raise AuthFailure("Not authenticated")
    return user_id


def _read_upload(upload: UploadFile, *, max_bytes: int) -> bytes:
    too_large = ValidationFailure(f"PDF file is too large (maximum is {max_bytes} bytes)")
    if upload.size is not None and upload.size > max_bytes:
        raise too_large

    data = upload.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise too_large
    return data


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _progress_payload(state: ProgressState) -> dict[str, Any]:
    return {
        "status": state.status.value,
        "current_step": state.step,
        "total_steps": state.total,
        "percent_complete": state.percent_complete,
        "chunk": state.chunk.to_dict() if state.chunk is not None else None,
    }


def _path_summary(path: LearningPath) -> dict[str, Any]:
    state = ProgressState.of(path)
    return {
        "id": path.id,
        "title": path.title,
        "chunk_count": len(path.chunks),
        "current_step": state.step,
        "status": state.status.value,
        "created_at": _to_iso(path.created_at),
    }


def _path_detail(path: LearningPath) -> dict[str, Any]:
    return {
        "id": path.id,
        "title": path.title,
        "chunks": [chunk.to_dict() for chunk in path.chunks],
        "source_document_url": path.source_document_url,
        "created_at": _to_iso(path.created_at),
        "updated_at": _to_iso(path.updated_at),
        "progress": _progress_payload(ProgressState.of(path)),
    }


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/paths/generate-from-text", status_code=201)
def generate_from_text(
    request: GenerateFromTextRequest,
    user_id: Annotated[str, Depends(get_current_user)],
    completion_client: Annotated[CompletionClient, Depends(get_completion_client)],
    store: Annotated[PathStore, Depends(get_path_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict[str, str]:
    generated = generate_path(
        owner_id=user_id,
        title=request.title,
        source_text=request.content,
        completion_client=completion_client,
        store=store,
        settings=settings,
    )
    return {"pathId": generated.path_id}


@app.post("/paths/generate-from-pdf", status_code=201)
def generate_from_pdf(
    user_id: Annotated[str, Depends(get_current_user)],
    completion_client: Annotated[CompletionClient, Depends(get_completion_client)],
    store: Annotated[PathStore, Depends(get_path_store)],
    blob_store: Annotated[BlobStore, Depends(get_blob_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    title: Annotated[str, Form()] = "",
    pdf: Annotated[UploadFile | None, File()] = None,
) -> dict[str, str]:
    if not title.strip() or pdf is None:
        raise ValidationFailure("Title and PDF file are required.")

    content_type = (pdf.content_type or PDF_CONTENT_TYPE).lower()
    if content_type not in _PDF_CONTENT_TYPES:
        raise ValidationFailure(f"Unsupported file type: {content_type}")

    document = SourceDocument(
        filename=pdf.filename or "document.pdf",
        content_type=PDF_CONTENT_TYPE,
        data=_read_upload(pdf, max_bytes=settings.max_upload_bytes),
    )
    generated = generate_path_from_pdf(
        owner_id=user_id,
        title=title,
        document=document,
        completion_client=completion_client,
        store=store,
        blob_store=blob_store,
        settings=settings,
    )
    return {"pathId": generated.path_id}


@app.get("/paths")
def list_paths(
    user_id: Annotated[str, Depends(get_current_user)],
    store: Annotated[PathStore, Depends(get_path_store)],
) -> list[dict[str, Any]]:
    return [_path_summary(path) for path in store.list_paths(requester_id=user_id)]


@app.get("/paths/{path_id}")
def get_path(
    path_id: str,
    user_id: Annotated[str, Depends(get_current_user)],
    store: Annotated[PathStore, Depends(get_path_store)],
) -> dict[str, Any]:
    return _path_detail(store.get_path(path_id, requester_id=user_id))


@app.post("/paths/{path_id}/advance")
def advance_path(
    path_id: str,
    user_id: Annotated[str, Depends(get_current_user)],
    store: Annotated[PathStore, Depends(get_path_store)],
    request: AdvanceRequest | None = None,
) -> dict[str, Any]:
    from_step = request.from_step if request is not None else None
    state = ProgressController(store).advance(path_id, requester_id=user_id, from_step=from_step)
    return _progress_payload(state)


@app.get("/documents/{key:path}")
def get_document(
    key: str,
    user_id: Annotated[str, Depends(get_current_user)],
    blob_store: Annotated[BlobStore, Depends(get_blob_store)],
) -> FileResponse:
    # S3 documents are reached through their presigned links.
    if not isinstance(blob_store, LocalBlobStore):
        raise DocumentNotFound(key)

    document_path = blob_store.document_path(key, owner_id=user_id)
    return FileResponse(document_path, media_type=PDF_CONTENT_TYPE, filename=document_path.name)


def run() -> None:
    import uvicorn

    uvicorn.run("cognipath.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
