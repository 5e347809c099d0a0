import pytest
from sqlalchemy.engine import Engine

from cognipath.errors import PathNotFound, StepConflict
from cognipath.progress import ProgressController, ProgressState, ProgressStatus
from cognipath.services.decomposition.types import Chunk
from cognipath.store import PathStore


def _chunks(count: int) -> list[Chunk]:
    return [Chunk(title=f"Step {index}", summary="Do the thing.") for index in range(count)]


def test_progress_state_transitions_are_forward_only_and_terminal() -> None:
    chunks = _chunks(3)
    state = ProgressState.at(0, chunks)

    visited = [(state.step, state.chunk)]
    while not state.is_completed:
        state = state.advanced(chunks)
        visited.append((state.step, state.chunk))

    assert visited == [(0, chunks[0]), (1, chunks[1]), (2, chunks[2]), (3, None)]
    assert state.status is ProgressStatus.COMPLETED
    assert state.advanced(chunks) == state


def test_progress_state_advanced_requires_matching_chunks() -> None:
    state = ProgressState.at(0, _chunks(3))

    with pytest.raises(ValueError, match="expected 3 chunks"):
        state.advanced(_chunks(2))


def test_progress_state_of_path_exposes_current_chunk(engine: Engine) -> None:
    store = PathStore(engine)
    path_id = store.create_path(owner_id="alice", title="Chem", chunks=_chunks(5))

    state = ProgressState.of(store.get_path(path_id, requester_id="alice"))

    assert state.status is ProgressStatus.IN_PROGRESS
    assert state.step == 0
    assert state.total == 5
    assert state.chunk == Chunk(title="Step 0", summary="Do the thing.")
    assert state.percent_complete == 0.0


def test_controller_advances_to_completion_then_stays(engine: Engine) -> None:
    store = PathStore(engine)
    controller = ProgressController(store)
    path_id = store.create_path(owner_id="alice", title="Chem", chunks=_chunks(5))

    states = [controller.advance(path_id, requester_id="alice") for _ in range(7)]
    steps = [state.step for state in states]

    assert steps == [1, 2, 3, 4, 5, 5, 5]
    assert [state.chunk.title for state in states[:4]] == ["Step 1", "Step 2", "Step 3", "Step 4"]
    final = controller.current(path_id, requester_id="alice")
    assert final.status is ProgressStatus.COMPLETED
    assert final.chunk is None
    assert final.percent_complete == 100.0
    assert store.get_path(path_id, requester_id="alice").current_step == 5


def test_controller_rejects_stale_from_step(engine: Engine) -> None:
    store = PathStore(engine)
    controller = ProgressController(store)
    path_id = store.create_path(owner_id="alice", title="Chem", chunks=_chunks(5))
    controller.advance(path_id, requester_id="alice", from_step=0)

    with pytest.raises(StepConflict):
        controller.advance(path_id, requester_id="alice", from_step=0)

    assert controller.current(path_id, requester_id="alice").step == 1


def test_controller_scopes_to_owner(engine: Engine) -> None:
    store = PathStore(engine)
    controller = ProgressController(store)
    path_id = store.create_path(owner_id="bob", title="Chem", chunks=_chunks(5))

    with pytest.raises(PathNotFound):
        controller.advance(path_id, requester_id="alice")
