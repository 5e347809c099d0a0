from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
import logging

from cognipath.services.decomposition.types import Chunk
from cognipath.store import LearningPath, PathStore

logger = logging.getLogger(__name__)


class ProgressStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ProgressState:
    """Where an owner stands in a learning path.

    ``IN_PROGRESS`` holds ``0 <= step < total`` and the chunk being studied;
    ``COMPLETED`` is terminal with ``step == total``.
    """

    status: ProgressStatus
    step: int
    total: int
    chunk: Chunk | None = None

    @classmethod
    def at(cls, step: int, chunks: Sequence[Chunk]) -> ProgressState:
        total = len(chunks)
        step = min(step, total)
        if step >= total:
            return cls(status=ProgressStatus.COMPLETED, step=total, total=total)
        return cls(
            status=ProgressStatus.IN_PROGRESS,
            step=step,
            total=total,
            chunk=chunks[step],
        )

    @classmethod
    def of(cls, path: LearningPath) -> ProgressState:
        return cls.at(path.current_step, path.chunks)

    @property
    def is_completed(self) -> bool:
        return self.status is ProgressStatus.COMPLETED

    @property
    def percent_complete(self) -> float:
        if self.total == 0:
            return 100.0
        return round(self.step / self.total * 100, 1)

    def advanced(self, chunks: Sequence[Chunk]) -> ProgressState:
        if len(chunks) != self.total:
            raise ValueError(f"expected {self.total} chunks, got {len(chunks)}")
        if self.is_completed:
            return self
        return ProgressState.at(self.step + 1, chunks)


class ProgressController:
    def __init__(self, store: PathStore) -> None:
        self._store = store

    def current(self, path_id: str, *, requester_id: str) -> ProgressState:
        return ProgressState.of(self._store.get_path(path_id, requester_id=requester_id))

    def advance(
        self,
        path_id: str,
        *,
        requester_id: str,
        from_step: int | None = None,
    ) -> ProgressState:
        path = self._store.get_path(path_id, requester_id=requester_id)
        state = ProgressState.of(path)
        if state.is_completed:
            return state

        expected_step = state.step if from_step is None else from_step
        new_step = self._store.advance_step(
            path_id, requester_id=requester_id, from_step=expected_step
        )
        if new_step == state.step + 1:
            next_state = state.advanced(path.chunks)
        else:
            next_state = ProgressState.at(new_step, path.chunks)
        logger.info(
            "advanced path id=%s step=%d/%d status=%s",
            path_id,
            next_state.step,
            next_state.total,
            next_state.status.value,
        )
        return next_state
