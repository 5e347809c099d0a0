from __future__ import annotations

import json
from typing import Any

from cognipath.errors import DecodeFailure
from cognipath.services.decomposition.types import Chunk

_REQUIRED_FIELDS = ("title", "summary", "key_points")


def _require_text(element: dict[str, Any], field: str, index: int) -> str:
    value = element.get(field)
    if not isinstance(value, str):
        raise DecodeFailure(f"chunk {index}: '{field}' must be a string")
    normalized = value.strip()
    if not normalized:
        raise DecodeFailure(f"chunk {index}: '{field}' must not be empty")
    return normalized


def _decode_key_points(element: dict[str, Any], index: int) -> tuple[str, ...]:
    value = element.get("key_points")
    if not isinstance(value, list):
        raise DecodeFailure(f"chunk {index}: 'key_points' must be an array of strings")

    points: list[str] = []
    for point_index, point in enumerate(value):
        if not isinstance(point, str):
            raise DecodeFailure(
                f"chunk {index}: key_points[{point_index}] must be a string"
            )
        normalized = point.strip()
        if not normalized:
            raise DecodeFailure(
                f"chunk {index}: key_points[{point_index}] must not be empty"
            )
        points.append(normalized)
    return tuple(points)


def _decode_chunk(element: Any, index: int) -> Chunk:
    if not isinstance(element, dict):
        raise DecodeFailure(f"chunk {index}: expected a JSON object")

    missing = [field for field in _REQUIRED_FIELDS if field not in element]
    if missing:
        raise DecodeFailure(f"chunk {index}: missing field(s) {', '.join(missing)}")

    return Chunk(
        title=_require_text(element, "title", index),
        summary=_require_text(element, "summary", index),
        key_points=_decode_key_points(element, index),
    )


def decode_chunks(
    raw_text: str,
    *,
    min_chunks: int | None = None,
    max_chunks: int | None = None,
) -> list[Chunk]:
    """Parse raw model output into chunks, all or nothing.

    The text must be exactly one JSON array (surrounding whitespace aside).
    Array order is kept as the learning order.
    """
    if not isinstance(raw_text, str) or not raw_text.strip():
        raise DecodeFailure("model output is empty")

    try:
        payload = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise DecodeFailure(f"model output is not valid JSON: {exc.msg}") from exc
    except RecursionError as exc:
        raise DecodeFailure("model output is nested too deeply") from exc

    if not isinstance(payload, list):
        raise DecodeFailure(
            f"model output must be a JSON array, got {type(payload).__name__}"
        )

    chunks = [_decode_chunk(element, index) for index, element in enumerate(payload)]

    if min_chunks is not None and len(chunks) < min_chunks:
        raise DecodeFailure(
            f"model output has {len(chunks)} chunks, expected at least {min_chunks}"
        )
    if max_chunks is not None and len(chunks) > max_chunks:
        raise DecodeFailure(
            f"model output has {len(chunks)} chunks, expected at most {max_chunks}"
        )

    return chunks
