"""Unit tests for the version lifecycle manager (in-memory store)."""

import asyncio
import uuid

import pytest

from backend.app.db.inmemory import InMemoryVersionStore
from backend.app.models.content import FullContent, RawText
from backend.app.models.documents import VersionRecord, VersionType
from backend.app.versions.errors import (
    VersionConflictError,
    VersionNotFoundError,
    VersionUnauthorizedError,
)
from backend.app.versions.manager import VersionLifecycleManager, VersionMetrics

OWNER = uuid.UUID("00000000-0000-0000-0000-0000000000aa")
STRANGER = uuid.UUID("00000000-0000-0000-0000-0000000000bb")


class RecordingMetrics(VersionMetrics):
    """Collects transition counts."""

    def __init__(self) -> None:
        self.transitions: list[tuple[str, str]] = []

    def inc_transition(self, transition: str, outcome: str) -> None:
        self.transitions.append((transition, outcome))


def _canvas(**fields: str) -> FullContent:
    return FullContent(fields=fields)


async def _setup(
    manager: VersionLifecycleManager, edits: int = 0
) -> tuple[uuid.UUID, list[VersionRecord]]:
    document, first = await manager.create_document(
        OWNER,
        entity_type="LeanCanvas",
        title="My Canvas",
        content=_canvas(Problem="v1"),
    )
    assert first is not None
    versions = [first]
    for n in range(edits):
        versions.append(
            await manager.create_edit_version(
                document.document_id,
                _canvas(Problem=f"v{n + 2}"),
                VersionType.ai_edit,
                user_id=OWNER,
            )
        )
    return document.document_id, versions


def _assert_chain_invariants(versions: list[VersionRecord]) -> None:
    assert [v.version_number for v in versions] == list(range(1, len(versions) + 1))
    assert sum(1 for v in versions if v.is_current) == 1
    assert versions[-1].is_current


@pytest.fixture
def store() -> InMemoryVersionStore:
    """Create empty store."""
    return InMemoryVersionStore()


@pytest.fixture
def metrics() -> RecordingMetrics:
    """Create recording metrics."""
    return RecordingMetrics()


@pytest.fixture
def manager(store: InMemoryVersionStore, metrics: RecordingMetrics) -> VersionLifecycleManager:
    """Create manager over the store."""
    return VersionLifecycleManager(store, metrics=metrics)


@pytest.mark.asyncio
async def test_create_document_creates_version_one(manager: VersionLifecycleManager) -> None:
    """Test the first version is current, unbased and titled from the document."""
    document_id, versions = await _setup(manager)

    first = versions[0]
    assert first.version_number == 1
    assert first.is_current
    assert first.base_version_id is None
    assert first.version_type == VersionType.user_edit
    assert first.content.title == "My Canvas"

    current = await manager.get_current_version(document_id, OWNER)
    assert current.version_id == first.version_id


@pytest.mark.asyncio
async def test_create_initial_version_on_empty_document(
    manager: VersionLifecycleManager,
) -> None:
    """Test an empty document gets version 1 once, then refuses a second."""
    document, version = await manager.create_document(
        OWNER, entity_type="Project", title="Empty"
    )
    assert version is None
    assert await manager.list_versions(document.document_id, OWNER) == []

    first = await manager.create_initial_version(
        document.document_id, RawText(text="hello"), user_id=OWNER
    )
    assert first.version_number == 1
    assert first.is_current

    with pytest.raises(VersionConflictError):
        await manager.create_initial_version(
            document.document_id, RawText(text="again"), user_id=OWNER
        )

    assert len(await manager.list_versions(document.document_id, OWNER)) == 1


@pytest.mark.asyncio
async def test_edit_sequence_keeps_single_current(manager: VersionLifecycleManager) -> None:
    """Test exactly one current version and contiguous numbers after every edit."""
    document_id, _ = await _setup(manager)

    for n in range(5):
        await manager.create_edit_version(
            document_id, _canvas(Problem=f"edit {n}"), VersionType.user_edit, user_id=OWNER
        )
        _assert_chain_invariants(await manager.list_versions(document_id, OWNER))


@pytest.mark.asyncio
async def test_edit_version_based_on_previous_current(manager: VersionLifecycleManager) -> None:
    """Test base_version_id points at the version that was current."""
    document_id, versions = await _setup(manager, edits=2)

    assert versions[1].base_version_id == versions[0].version_id
    assert versions[2].base_version_id == versions[1].version_id
    assert versions[2].version_type == VersionType.ai_edit

    stored = await manager.list_versions(document_id, OWNER)
    assert [v.is_current for v in stored] == [False, False, True]


@pytest.mark.asyncio
async def test_title_carried_forward(manager: VersionLifecycleManager) -> None:
    """Test an edit without a title keeps the previous title."""
    document, _ = await manager.create_document(
        OWNER,
        entity_type="LeanCanvas",
        title="Doc",
        content=FullContent(title="Acme Canvas", fields={"Problem": "x"}),
    )

    version = await manager.create_edit_version(
        document.document_id, _canvas(Problem="y"), VersionType.ai_edit, user_id=OWNER
    )

    assert version.content.title == "Acme Canvas"


@pytest.mark.asyncio
async def test_explicit_title_updates_document(manager: VersionLifecycleManager) -> None:
    """Test a new title in content refreshes the document's display title."""
    document_id, _ = await _setup(manager)

    await manager.create_edit_version(
        document_id,
        FullContent(title="Renamed", fields={"Problem": "x"}),
        VersionType.user_edit,
        user_id=OWNER,
    )

    document = await manager.get_document(document_id, OWNER)
    assert document.title == "Renamed"


@pytest.mark.asyncio
async def test_stale_base_version_conflicts(manager: VersionLifecycleManager) -> None:
    """Test an edit prepared against an old version is refused."""
    document_id, versions = await _setup(manager, edits=1)

    with pytest.raises(VersionConflictError):
        await manager.create_edit_version(
            document_id,
            _canvas(Problem="late"),
            VersionType.user_edit,
            user_id=OWNER,
            base_version_id=versions[0].version_id,
        )

    stored = await manager.list_versions(document_id, OWNER)
    assert len(stored) == 2
    _assert_chain_invariants(stored)


@pytest.mark.asyncio
async def test_concurrent_edits_one_wins(manager: VersionLifecycleManager) -> None:
    """Test two edits racing from the same version: one succeeds, one conflicts."""
    document_id, versions = await _setup(manager)
    base_id = versions[0].version_id

    results = await asyncio.gather(
        manager.create_edit_version(
            document_id, _canvas(Problem="a"), VersionType.ai_edit, user_id=OWNER, base_version_id=base_id
        ),
        manager.create_edit_version(
            document_id, _canvas(Problem="b"), VersionType.ai_edit, user_id=OWNER, base_version_id=base_id
        ),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, VersionRecord)]
    conflicts = [r for r in results if isinstance(r, VersionConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 1

    stored = await manager.list_versions(document_id, OWNER)
    assert len(stored) == 2
    _assert_chain_invariants(stored)
    assert stored[-1].version_id == successes[0].version_id


@pytest.mark.asyncio
async def test_reject_restores_previous_versions(manager: VersionLifecycleManager) -> None:
    """Test 1->2->3: reject 3, reject 2, then rejecting 1 fails."""
    document_id, versions = await _setup(manager, edits=2)
    v1, v2, v3 = versions

    restored = await manager.reject_version(v3.version_id, OWNER)
    assert restored == v2.version_id
    stored = await manager.list_versions(document_id, OWNER)
    assert [v.version_id for v in stored] == [v1.version_id, v2.version_id]
    assert stored[-1].is_current

    restored = await manager.reject_version(v2.version_id, OWNER)
    assert restored == v1.version_id
    stored = await manager.list_versions(document_id, OWNER)
    assert [v.version_id for v in stored] == [v1.version_id]
    assert stored[0].is_current

    with pytest.raises(VersionNotFoundError):
        await manager.reject_version(v1.version_id, OWNER)

    assert (await manager.get_current_version(document_id, OWNER)).version_id == v1.version_id


@pytest.mark.asyncio
async def test_reject_non_current_version_fails(manager: VersionLifecycleManager) -> None:
    """Test only the current version can be rejected."""
    document_id, versions = await _setup(manager, edits=2)

    with pytest.raises(VersionNotFoundError):
        await manager.reject_version(versions[1].version_id, OWNER)

    assert len(await manager.list_versions(document_id, OWNER)) == 3


@pytest.mark.asyncio
async def test_reject_by_other_user_unauthorized(manager: VersionLifecycleManager) -> None:
    """Test ownership is checked before anything changes."""
    document_id, versions = await _setup(manager, edits=1)

    with pytest.raises(VersionUnauthorizedError):
        await manager.reject_version(versions[1].version_id, STRANGER)

    stored = await manager.list_versions(document_id, OWNER)
    assert len(stored) == 2
    assert stored[-1].is_current


@pytest.mark.asyncio
async def test_reject_then_edit_reuses_number(manager: VersionLifecycleManager) -> None:
    """Test numbering stays contiguous after a rejection."""
    document_id, versions = await _setup(manager, edits=1)
    await manager.reject_version(versions[1].version_id, OWNER)

    version = await manager.create_edit_version(
        document_id, _canvas(Problem="again"), VersionType.ai_edit, user_id=OWNER
    )

    assert version.version_number == 2
    assert version.base_version_id == versions[0].version_id


@pytest.mark.asyncio
async def test_accept_is_noop(manager: VersionLifecycleManager) -> None:
    """Test accepting confirms without changing the chain."""
    document_id, versions = await _setup(manager, edits=1)

    accepted = await manager.accept_version(versions[1].version_id, OWNER)

    assert accepted.version_id == versions[1].version_id
    stored = await manager.list_versions(document_id, OWNER)
    assert [v.version_id for v in stored] == [v.version_id for v in versions]
    assert [v.is_current for v in stored] == [False, True]


@pytest.mark.asyncio
async def test_accept_errors(manager: VersionLifecycleManager) -> None:
    """Test accept on a missing version or by another user."""
    _, versions = await _setup(manager)

    with pytest.raises(VersionNotFoundError):
        await manager.accept_version(uuid.uuid4(), OWNER)

    with pytest.raises(VersionUnauthorizedError):
        await manager.accept_version(versions[0].version_id, STRANGER)


@pytest.mark.asyncio
async def test_restore_creates_copy(manager: VersionLifecycleManager) -> None:
    """Test restore duplicates old content into a new restore version."""
    document_id, versions = await _setup(manager, edits=1)

    restored = await manager.restore_version(versions[0].version_id, OWNER)

    assert restored.version_number == 3
    assert restored.version_type == VersionType.restore
    assert restored.base_version_id == versions[1].version_id
    assert restored.content == versions[0].content

    stored = await manager.list_versions(document_id, OWNER)
    _assert_chain_invariants(stored)
    assert stored[0].version_id == versions[0].version_id
    assert not stored[0].is_current


@pytest.mark.asyncio
async def test_restore_current_version_fails(manager: VersionLifecycleManager) -> None:
    """Test restoring the current version is refused."""
    _, versions = await _setup(manager, edits=1)

    with pytest.raises(VersionNotFoundError):
        await manager.restore_version(versions[1].version_id, OWNER)


@pytest.mark.asyncio
async def test_failed_insert_rolls_back(metrics: RecordingMetrics) -> None:
    """Test a failure after flipping the old version leaves it current."""

    class FailingStore(InMemoryVersionStore):
        fail = False

        async def insert_version(self, version: VersionRecord) -> VersionRecord:
            if self.fail:
                raise RuntimeError("disk full")
            return await super().insert_version(version)

    store = FailingStore()
    manager = VersionLifecycleManager(store, metrics=metrics)
    document_id, versions = await _setup(manager)

    store.fail = True
    with pytest.raises(RuntimeError):
        await manager.create_edit_version(
            document_id, _canvas(Problem="x"), VersionType.ai_edit, user_id=OWNER
        )

    current = await manager.get_current_version(document_id, OWNER)
    assert current.version_id == versions[0].version_id
    assert current.is_current


@pytest.mark.asyncio
async def test_missing_document(manager: VersionLifecycleManager) -> None:
    """Test operations on an unknown document."""
    with pytest.raises(VersionNotFoundError):
        await manager.get_current_version(uuid.uuid4(), OWNER)

    with pytest.raises(VersionNotFoundError):
        await manager.create_edit_version(
            uuid.uuid4(), _canvas(Problem="x"), VersionType.ai_edit, user_id=OWNER
        )


@pytest.mark.asyncio
async def test_transitions_counted(
    manager: VersionLifecycleManager, metrics: RecordingMetrics
) -> None:
    """Test metrics see successes and failures by error code."""
    document_id, versions = await _setup(manager, edits=1)

    with pytest.raises(VersionConflictError):
        await manager.create_edit_version(
            document_id,
            _canvas(Problem="late"),
            VersionType.ai_edit,
            user_id=OWNER,
            base_version_id=versions[0].version_id,
        )

    assert ("create_document", "success") in metrics.transitions
    assert ("create_edit", "success") in metrics.transitions
    assert ("create_edit", "conflict") in metrics.transitions
