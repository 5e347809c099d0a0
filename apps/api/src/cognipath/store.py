from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from collections.abc import Sequence
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cognipath.errors import PathNotFound, PersistenceFailure, StepConflict
from cognipath.models import PathRecord
from cognipath.services.decomposition.types import Chunk

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LearningPath:
    id: str
    owner_id: str
    title: str
    chunks: tuple[Chunk, ...]
    current_step: int
    source_document_url: str | None
    source_document_key: str | None
    created_at: datetime | None
    updated_at: datetime | None

    @property
    def is_completed(self) -> bool:
        return self.current_step >= len(self.chunks)


def _to_learning_path(record: PathRecord) -> LearningPath:
    return LearningPath(
        id=record.id,
        owner_id=record.owner_id,
        title=record.title,
        chunks=tuple(Chunk.from_dict(item) for item in record.chunks or []),
        current_step=record.current_step,
        source_document_url=record.source_document_url,
        source_document_key=record.source_document_key,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class PathStore:
    """Owner-scoped persistence for learning paths.

    A path is written once with its full chunk list; afterwards only
    ``current_step`` changes, and only through :meth:`advance_step`.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def create_path(
        self,
        *,
        owner_id: str,
        title: str,
        chunks: Sequence[Chunk],
        source_document_url: str | None = None,
        source_document_key: str | None = None,
    ) -> str:
        path_id = uuid4().hex
        now = datetime.now(timezone.utc)
        record = PathRecord(
            id=path_id,
            owner_id=owner_id,
            title=title,
            chunks=[chunk.to_dict() for chunk in chunks],
            chunk_count=len(chunks),
            current_step=0,
            source_document_url=source_document_url,
            source_document_key=source_document_key,
            created_at=now,
            updated_at=now,
        )

        try:
            with Session(self._engine) as session, session.begin():
                session.add(record)
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"failed to save learning path: {exc}") from exc

        logger.info("created path id=%s owner=%s chunks=%d", path_id, owner_id, len(chunks))
        return path_id

    def get_path(self, path_id: str, *, requester_id: str) -> LearningPath:
        try:
            with Session(self._engine) as session:
                record = session.scalar(
                    select(PathRecord)
                    .where(PathRecord.id == path_id)
                    .where(PathRecord.owner_id == requester_id)
                )
                path = _to_learning_path(record) if record is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"failed to load learning path: {exc}") from exc

        if path is None:
            raise PathNotFound(path_id)
        return path

    def list_paths(self, *, requester_id: str) -> list[LearningPath]:
        try:
            with Session(self._engine) as session:
                records = session.scalars(
                    select(PathRecord)
                    .where(PathRecord.owner_id == requester_id)
                    .order_by(PathRecord.created_at.desc(), PathRecord.id.asc())
                ).all()
                return [_to_learning_path(record) for record in records]
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"failed to list learning paths: {exc}") from exc

    def advance_step(self, path_id: str, *, requester_id: str, from_step: int) -> int:
        """Move ``current_step`` from ``from_step`` to ``from_step + 1``.

        The update only applies while the stored step still equals
        ``from_step`` and is below the chunk count, so two concurrent callers
        holding the same ``from_step`` get one success and one
        :class:`StepConflict`.
        """
        try:
            with Session(self._engine) as session, session.begin():
                result = session.execute(
                    update(PathRecord)
                    .where(PathRecord.id == path_id)
                    .where(PathRecord.owner_id == requester_id)
                    .where(PathRecord.current_step == from_step)
                    .where(PathRecord.current_step < PathRecord.chunk_count)
                    .values(
                        current_step=PathRecord.current_step + 1,
                        updated_at=datetime.now(timezone.utc),
                    )
                    .execution_options(synchronize_session=False)
                )
                updated = result.rowcount
                current_step = None
                if updated != 1:
                    current_step = session.scalar(
                        select(PathRecord.current_step)
                        .where(PathRecord.id == path_id)
                        .where(PathRecord.owner_id == requester_id)
                    )
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"failed to advance learning path: {exc}") from exc

        if updated == 1:
            return from_step + 1
        if current_step is None:
            raise PathNotFound(path_id)
        raise StepConflict(path_id, expected_step=from_step, current_step=current_step)
