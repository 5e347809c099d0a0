import json

import pytest

from cognipath.errors import DecodeFailure
from cognipath.services.decomposition.decoder import decode_chunks
from cognipath.services.decomposition.types import Chunk


def _chunk_payload(index: int) -> dict[str, object]:
    return {
        "title": f"Topic {index}",
        "summary": f"What topic {index} covers.",
        "key_points": [f"point {index}.a", f"point {index}.b"],
    }


def test_decode_chunks_preserves_array_order() -> None:
    raw = json.dumps([_chunk_payload(index) for index in range(7)])

    chunks = decode_chunks(raw, min_chunks=5, max_chunks=15)

    assert [chunk.title for chunk in chunks] == [f"Topic {index}" for index in range(7)]
    assert chunks[3] == Chunk(
        title="Topic 3",
        summary="What topic 3 covers.",
        key_points=("point 3.a", "point 3.b"),
    )


def test_decode_chunks_accepts_empty_key_points_and_ignores_extra_keys() -> None:
    raw = json.dumps(
        [{"title": "Intro", "summary": "Warm up.", "key_points": [], "minutes": 15}]
    )

    chunks = decode_chunks(raw)

    assert chunks == [Chunk(title="Intro", summary="Warm up.", key_points=())]


def test_decode_chunks_allows_surrounding_whitespace() -> None:
    raw = "\n  " + json.dumps([_chunk_payload(1)]) + "\n"

    assert len(decode_chunks(raw)) == 1


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ("Sorry, I can't do that.", "not valid JSON"),
        ("", "empty"),
        ('{"title": "x", "summary": "y", "key_points": []}', "must be a JSON array"),
        ('Here you go: [{"title": "x", "summary": "y", "key_points": []}]', "not valid JSON"),
        ('```json\n[{"title": "x", "summary": "y", "key_points": []}]\n```', "not valid JSON"),
        ('["just a string"]', "expected a JSON object"),
        ('[{"summary": "y", "key_points": []}]', "missing field(s) title"),
        ('[{"title": "x", "key_points": []}]', "missing field(s) summary"),
        ('[{"title": "x", "summary": "y"}]', "missing field(s) key_points"),
        ('[{"title": 3, "summary": "y", "key_points": []}]', "'title' must be a string"),
        ('[{"title": "x", "summary": "  ", "key_points": []}]', "'summary' must not be empty"),
        ('[{"title": "x", "summary": "y", "key_points": "a, b"}]', "'key_points' must be an array"),
        ('[{"title": "x", "summary": "y", "key_points": ["a", 2]}]', "key_points[1] must be a string"),
        ('[{"title": "x", "summary": "y", "key_points": [""]}]', "key_points[0] must not be empty"),
        ("[" * 200000 + "]" * 200000, "nested too deeply"),
    ],
    ids=lambda value: value[:40] or "empty",
)
def test_decode_chunks_rejects_malformed_output(raw: str, message: str) -> None:
    with pytest.raises(DecodeFailure) as exc_info:
        decode_chunks(raw)

    assert message in str(exc_info.value)


def test_decode_chunks_rejects_whole_batch_when_one_element_is_invalid() -> None:
    payload = [_chunk_payload(index) for index in range(6)]
    del payload[4]["summary"]

    with pytest.raises(DecodeFailure, match="chunk 4"):
        decode_chunks(json.dumps(payload))


def test_decode_chunks_enforces_count_bounds() -> None:
    too_few = json.dumps([_chunk_payload(index) for index in range(4)])
    too_many = json.dumps([_chunk_payload(index) for index in range(16)])

    with pytest.raises(DecodeFailure, match="at least 5"):
        decode_chunks(too_few, min_chunks=5, max_chunks=15)
    with pytest.raises(DecodeFailure, match="at most 15"):
        decode_chunks(too_many, min_chunks=5, max_chunks=15)

    assert len(decode_chunks(too_few)) == 4
