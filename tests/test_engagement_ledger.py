import pytest

from civictrack.core.errors import Conflict, NotFound
from civictrack.config.mock_firestore import MockDocumentReference


def _upvotes(db, issue_id):
    return db.collection("issues").document(issue_id).get().to_dict()["upvotes"]


def test_toggle_twice_restores_original_state(ledger, db, make_issue):
    issue = make_issue()

    first = ledger.toggle_upvote(issue.id, "voter-1")
    assert first.upvoted is True
    assert first.upvotes == 1
    assert ledger.has_upvoted(issue.id, "voter-1")

    second = ledger.toggle_upvote(issue.id, "voter-1")
    assert second.upvoted is False
    assert second.upvotes == 0
    assert not ledger.has_upvoted(issue.id, "voter-1")

    third = ledger.toggle_upvote(issue.id, "voter-1")
    assert third.upvoted is True
    assert _upvotes(db, issue.id) == 1


def test_votes_from_different_users_accumulate(ledger, make_issue):
    issue = make_issue()
    for user_id in ("a", "b", "c"):
        ledger.toggle_upvote(issue.id, user_id)
    assert ledger.toggle_upvote(issue.id, "d").upvotes == 4


def test_concurrent_duplicate_insert_is_a_conflict(ledger, db, make_issue, monkeypatch):
    issue = make_issue()
    original_create = MockDocumentReference.create

    def racing_create(self, data):
        if self._collection == "upvotes":
            # A concurrent toggle by the same user lands first
            original_create(self, data)
        original_create(self, data)

    monkeypatch.setattr(MockDocumentReference, "create", racing_create)

    with pytest.raises(Conflict):
        ledger.toggle_upvote(issue.id, "voter-1")
    assert _upvotes(db, issue.id) == 0


def test_concurrent_double_delete_decrements_once(ledger, db, make_issue, monkeypatch):
    issue = make_issue()
    ledger.toggle_upvote(issue.id, "voter-1")
    original_delete = MockDocumentReference.delete

    def racing_delete(self, option=None):
        if self._collection == "upvotes":
            # The other toggle-off removes the vote first
            original_delete(self)
        original_delete(self, option=option)

    monkeypatch.setattr(MockDocumentReference, "delete", racing_delete)

    with pytest.raises(Conflict):
        ledger.toggle_upvote(issue.id, "voter-1")
    assert _upvotes(db, issue.id) == 1


def test_unknown_issue(ledger):
    with pytest.raises(NotFound):
        ledger.toggle_upvote("missing", "voter-1")


def test_delete_for_issue_removes_only_that_issue(ledger, db, make_issue):
    first = make_issue()
    second = make_issue(title="Broken light")
    ledger.toggle_upvote(first.id, "a")
    ledger.toggle_upvote(first.id, "b")
    ledger.toggle_upvote(second.id, "a")

    assert ledger.delete_for_issue(first.id) == 2
    assert not ledger.has_upvoted(first.id, "a")
    assert ledger.has_upvoted(second.id, "a")


def test_issue_deleted_mid_toggle_leaves_no_vote(ledger, db, make_issue, monkeypatch):
    issue = make_issue()
    original_update = MockDocumentReference.update

    def deleted_first(self, field_updates, option=None):
        if self._collection == "issues":
            # The owner deletes the issue after the vote was written
            self.delete()
        return original_update(self, field_updates, option=option)

    monkeypatch.setattr(MockDocumentReference, "update", deleted_first)

    with pytest.raises(NotFound):
        ledger.toggle_upvote(issue.id, "voter-1")
    assert not ledger.has_upvoted(issue.id, "voter-1")
    assert list(db.collection("upvotes").stream()) == []
