from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Chunk:
    title: str
    summary: str
    key_points: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "key_points": list(self.key_points),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Chunk:
        return cls(
            title=str(payload["title"]),
            summary=str(payload["summary"]),
            key_points=tuple(str(point) for point in payload.get("key_points", [])),
        )


@dataclass(frozen=True)
class SourceDocument:
    filename: str
    content_type: str
    data: bytes


@dataclass(frozen=True)
class GeneratedPath:
    path_id: str
    chunk_count: int
    model: str
    source_document_url: str | None = None
