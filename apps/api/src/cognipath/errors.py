"""Failure taxonomy shared by the decomposition pipeline, the stores and the API."""

from __future__ import annotations


class CogniPathError(RuntimeError):
    kind = "internal_error"


class AuthFailure(CogniPathError):
    kind = "auth_failure"


class ValidationFailure(CogniPathError):
    kind = "validation_failure"


class ExtractionFailure(CogniPathError):
    kind = "extraction_failure"


class GenerationFailure(CogniPathError):
    kind = "generation_failure"


class GenerationTimeout(GenerationFailure):
    kind = "generation_timeout"


class GenerationCancelled(GenerationFailure):
    kind = "generation_cancelled"


class DecodeFailure(CogniPathError):
    kind = "decode_failure"


class PersistenceFailure(CogniPathError):
    kind = "persistence_failure"


class PathNotFound(CogniPathError):
    kind = "not_found"

    def __init__(self, path_id: str) -> None:
        super().__init__(f"learning path not found: {path_id}")
        self.path_id = path_id


class StepConflict(CogniPathError):
    kind = "conflict"

    def __init__(self, path_id: str, *, expected_step: int, current_step: int) -> None:
        super().__init__(
            f"learning path {path_id} is at step {current_step}, not {expected_step}"
        )
        self.path_id = path_id
        self.expected_step = expected_step
        self.current_step = current_step


class DocumentNotFound(CogniPathError):
    kind = "not_found"

    def __init__(self, key: str) -> None:
        super().__init__(f"document not found: {key}")
        self.key = key
