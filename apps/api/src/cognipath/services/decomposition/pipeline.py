from __future__ import annotations

import logging
from threading import Event
from time import perf_counter

from cognipath.blob_store import BlobStore, build_document_key
from cognipath.config import Settings
from cognipath.errors import GenerationCancelled, PersistenceFailure, ValidationFailure
from cognipath.llm import CompletionClient
from cognipath.models import TITLE_MAX_LENGTH
from cognipath.services.decomposition.decoder import decode_chunks
from cognipath.services.decomposition.extractor import extract_pdf_text
from cognipath.services.decomposition.prompt import build_decomposition_prompt
from cognipath.services.decomposition.types import GeneratedPath, SourceDocument
from cognipath.store import PathStore

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def _raise_if_cancelled(cancel_event: Event | None, stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise GenerationCancelled(f"generation cancelled before {stage}")


def _normalize_title(title: str) -> str:
    normalized_title = title.strip()
    if not normalized_title:
        raise ValidationFailure("title must not be empty")
    if len(normalized_title) > TITLE_MAX_LENGTH:
        raise ValidationFailure(
            f"title is too long ({len(normalized_title)} characters, "
            f"maximum is {TITLE_MAX_LENGTH})"
        )
    return normalized_title


def _validate_request(*, title: str, source_text: str, max_source_chars: int) -> tuple[str, str]:
    normalized_title = _normalize_title(title)

    normalized_text = source_text.strip()
    if not normalized_text:
        raise ValidationFailure("content must not be empty")
    if len(normalized_text) > max_source_chars:
        raise ValidationFailure(
            f"content is too long ({len(normalized_text)} characters, "
            f"maximum is {max_source_chars})"
        )
    return normalized_title, normalized_text


def _store_source_document(
    blob_store: BlobStore,
    *,
    owner_id: str,
    document: SourceDocument,
) -> tuple[str, str]:
    key = build_document_key(owner_id, document.filename)
    blob_store.put(key, document.data, content_type=document.content_type or PDF_CONTENT_TYPE)
    try:
        url = blob_store.link_for(key)
    except PersistenceFailure:
        _discard_source_document(blob_store, key)
        raise
    return key, url


def _discard_source_document(blob_store: BlobStore, key: str) -> None:
    try:
        blob_store.delete(key)
    except PersistenceFailure as exc:
        logger.warning("failed to remove orphaned document key=%s error=%s", key, exc)


def generate_path(
    *,
    owner_id: str,
    title: str,
    source_text: str,
    completion_client: CompletionClient,
    store: PathStore,
    settings: Settings,
    source_document: SourceDocument | None = None,
    blob_store: BlobStore | None = None,
    cancel_event: Event | None = None,
) -> GeneratedPath:
    """Decompose ``source_text`` into chunks and persist them as a new path.

    Stages run strictly in order and any failure aborts the rest, so a path
    is either stored with its complete chunk list or not at all.
    """
    if source_document is not None and blob_store is None:
        raise ValueError("blob_store is required when source_document is given")

    normalized_title, normalized_text = _validate_request(
        title=title,
        source_text=source_text,
        max_source_chars=settings.max_source_chars,
    )
    start = perf_counter()

    _raise_if_cancelled(cancel_event, "prompt build")
    prompt = build_decomposition_prompt(
        normalized_text,
        min_chunks=settings.min_chunks,
        max_chunks=settings.max_chunks,
    )

    _raise_if_cancelled(cancel_event, "completion request")
    completion = completion_client.complete(prompt=prompt)
    logger.info(
        "completion received owner=%s model=%s used_fallback=%s chars=%d",
        owner_id,
        completion.model,
        completion.used_fallback,
        len(completion.text),
    )

    _raise_if_cancelled(cancel_event, "decode")
    chunks = decode_chunks(
        completion.text,
        min_chunks=settings.min_chunks,
        max_chunks=settings.max_chunks,
    )

    _raise_if_cancelled(cancel_event, "save")
    document_key: str | None = None
    document_url: str | None = None
    if source_document is not None and blob_store is not None:
        document_key, document_url = _store_source_document(
            blob_store,
            owner_id=owner_id,
            document=source_document,
        )

    try:
        path_id = store.create_path(
            owner_id=owner_id,
            title=normalized_title,
            chunks=chunks,
            source_document_url=document_url,
            source_document_key=document_key,
        )
    except PersistenceFailure:
        if document_key is not None and blob_store is not None:
            _discard_source_document(blob_store, document_key)
        raise

    duration_ms = int((perf_counter() - start) * 1000)
    logger.info(
        "generated path id=%s owner=%s chunks=%d duration_ms=%d",
        path_id,
        owner_id,
        len(chunks),
        duration_ms,
    )
    return GeneratedPath(
        path_id=path_id,
        chunk_count=len(chunks),
        model=completion.model,
        source_document_url=document_url,
    )


def generate_path_from_pdf(
    *,
    owner_id: str,
    title: str,
    document: SourceDocument,
    completion_client: CompletionClient,
    store: PathStore,
    blob_store: BlobStore,
    settings: Settings,
    cancel_event: Event | None = None,
) -> GeneratedPath:
    _normalize_title(title)
    if not document.data:
        raise ValidationFailure("pdf file must not be empty")

    extracted_text = extract_pdf_text(document.data)
    logger.info(
        "extracted pdf owner=%s filename=%s chars=%d",
        owner_id,
        document.filename,
        len(extracted_text),
    )

    return generate_path(
        owner_id=owner_id,
        title=title,
        source_text=extracted_text,
        completion_client=completion_client,
        store=store,
        settings=settings,
        source_document=document,
        blob_store=blob_store,
        cancel_event=cancel_event,
    )
