from __future__ import annotations

DEFAULT_MIN_CHUNKS = 5
DEFAULT_MAX_CHUNKS = 15

_PROMPT_TEMPLATE = (
    'You are "CogniPath," an expert instructional designer creating learning paths '
    "for individuals with ADHD and other attention-management needs. "
    "Your task is to decompose the following text into a sequence of manageable "
    "learning chunks.\n"
    "Rules:\n"
    "1. Analyze the entire text to understand its structure and key concepts.\n"
    "2. Break it down into {min_chunks}-{max_chunks} logical chunks, in the order "
    "a learner should study them. Each chunk should represent about 15-20 minutes "
    "of focused work.\n"
    "3. For each chunk, provide a concise `title` (string), a `summary` (string, "
    "1-2 sentences), and an array of `key_points` (array of strings).\n"
    "4. The final output MUST be only a valid JSON array of objects, with no other "
    "text, comments, markdown fences, or explanations.\n"
    "The text to process is below:\n"
    "---\n"
    "{source_text}"
)


def build_decomposition_prompt(
    source_text: str,
    *,
    min_chunks: int = DEFAULT_MIN_CHUNKS,
    max_chunks: int = DEFAULT_MAX_CHUNKS,
) -> str:
    if not source_text.strip():
        raise ValueError("source_text must not be empty")
    if min_chunks <= 0:
        raise ValueError("min_chunks must be > 0")
    if max_chunks < min_chunks:
        raise ValueError("max_chunks must be >= min_chunks")

    return _PROMPT_TEMPLATE.format(
        min_chunks=min_chunks,
        max_chunks=max_chunks,
        source_text=source_text.strip(),
    )
