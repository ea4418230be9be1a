# Purpose: Tests for the file-backed draft store (save/resume, uploaded blobs, finalized tag maps, isolation per user).

import pytest

from bond_generator.drafts import DraftStore, WORKFLOW_STEPS
from bond_generator.errors import DraftNotFoundError, DraftValidationError, TagMapFinalizedError


@pytest.fixture
def store(tmp_path):
    return DraftStore(tmp_path / "drafts")


def test_create_and_resume(store):
    state = store.save(
        "user-1",
        "upload-template",
        files={"template": ("cert.docx", b"docx-bytes")},
    )
    assert state.files["template"] == {"filename": "cert.docx", "size": 10}

    updated = store.save("user-1", "tagging", draft_id=state.draft_id, legal_accepted=True)
    assert updated.draft_id == state.draft_id
    assert updated.current_step == "tagging"
    assert updated.legal_accepted is True
    # Earlier uploads survive a later save without files
    assert store.load_file("user-1", state.draft_id, "template") == ("cert.docx", b"docx-bytes")

    loaded = store.load("user-1", state.draft_id)
    assert loaded.current_step == "tagging"
    assert loaded.created_at == state.created_at


def test_list_and_latest(store):
    first = store.save("user-1", "upload-template")
    second = store.save("user-1", "upload-data")
    store.save("user-1", "preview-data", draft_id=first.draft_id)
    drafts = store.list_drafts("user-1")
    assert [d.draft_id for d in drafts] == [first.draft_id, second.draft_id]
    assert store.latest("user-1").draft_id == first.draft_id
    assert store.list_drafts("someone-else") == []
    assert store.latest("someone-else") is None


def test_drafts_are_scoped_to_their_user(store):
    state = store.save("user-1", "upload-template")
    with pytest.raises(DraftNotFoundError):
        store.load("user-2", state.draft_id)


def test_delete(store):
    state = store.save("user-1", "upload-template", files={"maturity": ("m.xlsx", b"x")})
    store.delete("user-1", state.draft_id)
    with pytest.raises(DraftNotFoundError):
        store.load("user-1", state.draft_id)
    with pytest.raises(DraftNotFoundError):
        store.delete("user-1", state.draft_id)


def test_finalized_tag_map_cannot_change(store):
    state = store.save("user-1", "tagging", tag_map={"template_id": "a"}, is_finalized=True)
    # Re-saving the same map is fine
    store.save("user-1", "assembly-check", draft_id=state.draft_id, tag_map={"template_id": "a"})
    with pytest.raises(TagMapFinalizedError):
        store.save("user-1", "tagging", draft_id=state.draft_id, tag_map={"template_id": "b"})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"current_step": "dancing"},
        {"current_step": WORKFLOW_STEPS[0], "files": {"logo": ("l.png", b"x")}},
    ],
)
def test_invalid_steps_and_kinds(store, kwargs):
    with pytest.raises(DraftValidationError):
        store.save("user-1", **kwargs)


def test_unsafe_ids_are_rejected(store):
    with pytest.raises(DraftValidationError):
        store.save("../escape", "upload-template")
    with pytest.raises(DraftNotFoundError):
        store.load("user-1", "../../etc")


def test_missing_file_kind(store):
    state = store.save("user-1", "upload-template")
    with pytest.raises(DraftNotFoundError):
        store.load_file("user-1", state.draft_id, "cusip")
