from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys

from cognipath.blob_store import create_blob_store
from cognipath.config import get_settings
from cognipath.db import get_engine
from cognipath.errors import ValidationFailure
from cognipath.llm import CompletionClient, OpenAIChatClient
from cognipath.logging_config import configure_logging
from cognipath.services.decomposition.pipeline import (
    PDF_CONTENT_TYPE,
    generate_path,
    generate_path_from_pdf,
)
from cognipath.services.decomposition.types import GeneratedPath, SourceDocument
from cognipath.store import PathStore

SUPPORTED_TEXT_EXTENSIONS = {".txt", ".md"}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cognipath-generate",
        description="Generate a learning path from a local text, markdown or PDF file",
    )
    parser.add_argument("source", help="Path to a .txt, .md or .pdf file")
    parser.add_argument("--owner", required=True, help="User id that will own the path")
    parser.add_argument("--title", default=None, help="Path title (defaults to the file stem)")
    return parser


def run_generate(
    *,
    source: Path,
    owner_id: str,
    title: str | None,
    completion_client: CompletionClient | None = None,
) -> GeneratedPath:
    if not source.is_file():
        raise ValidationFailure(f"Source file not found: {source}")

    settings = get_settings()
    if completion_client is None:
        completion_client = OpenAIChatClient(
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
            default_model=settings.model,
            fallback_model=settings.fallback_model,
            temperature=settings.temperature,
            timeout_seconds=settings.llm_timeout_seconds,
        )
    store = PathStore(get_engine())
    resolved_title = title or source.stem
    suffix = source.suffix.lower()

    if suffix == ".pdf":
        if source.stat().st_size > settings.max_upload_bytes:
            raise ValidationFailure(
                f"PDF file is too large (maximum is {settings.max_upload_bytes} bytes)"
            )
        return generate_path_from_pdf(
            owner_id=owner_id,
            title=resolved_title,
            document=SourceDocument(
                filename=source.name,
                content_type=PDF_CONTENT_TYPE,
                data=source.read_bytes(),
            ),
            completion_client=completion_client,
            store=store,
            blob_store=create_blob_store(
                backend=settings.blob_backend,
                blob_dir=settings.blob_dir,
                base_url=settings.blob_base_url,
                s3_bucket=settings.s3_bucket,
                s3_region=settings.s3_region,
                link_ttl_seconds=settings.link_ttl_seconds,
            ),
            settings=settings,
        )

    if suffix not in SUPPORTED_TEXT_EXTENSIONS:
        raise ValidationFailure(
            f"Unsupported file type {suffix or '<none>'} "
            f"(supported: {sorted(SUPPORTED_TEXT_EXTENSIONS | {'.pdf'})})"
        )

    return generate_path(
        owner_id=owner_id,
        title=resolved_title,
        source_text=source.read_text(encoding="utf-8"),
        completion_client=completion_client,
        store=store,
        settings=settings,
    )


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(get_settings().log_level)

    try:
        generated = run_generate(source=Path(args.source), owner_id=args.owner, title=args.title)
    except Exception as exc:
        print(f"[cognipath-generate] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc

    print(
        json.dumps(
            {
                "path_id": generated.path_id,
                "chunks": generated.chunk_count,
                "model": generated.model,
                "source_document_url": generated.source_document_url,
            }
        ),
        flush=True,
    )


if __name__ == "__main__":
    main()
