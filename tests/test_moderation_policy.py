import pytest

from civictrack.core.errors import Conflict, NotFound, ValidationError
from civictrack.config.mock_firestore import MockDocumentReference
from civictrack.services.moderation_policy import ModerationPolicy


def _issue(db, issue_id):
    return db.collection("issues").document(issue_id).get().to_dict()


def _reports_for(db, issue_id):
    return list(db.collection("spam_reports").where("issue", "==", issue_id).stream())


def test_issue_hides_at_threshold(moderation, db, make_issue):
    issue = make_issue()

    first = moderation.record_spam_report(issue.id, "r1", "Spam")
    second = moderation.record_spam_report(issue.id, "r2", "Fake Report")
    assert (first.spam_count, first.hidden) == (1, False)
    assert (second.spam_count, second.hidden) == (2, False)
    assert _issue(db, issue.id)["is_visible"] is True

    third = moderation.record_spam_report(issue.id, "r3", "Duplicate", description="Same as another one")
    assert third.spam_count == 3
    assert third.hidden is True

    stored = _issue(db, issue.id)
    assert stored["is_visible"] is False
    assert stored["spam_votes"] == 3
    assert len(_reports_for(db, issue.id)) == 3


def test_auto_hide_is_logged_once(moderation, activity, make_issue):
    issue = make_issue()
    for reporter in ("r1", "r2", "r3", "r4"):
        moderation.record_spam_report(issue.id, reporter, "Spam")

    actions = [record.action for record in activity.list_for_issue(issue.id)]
    assert actions.count("Issue auto-hidden") == 1


def test_duplicate_report_is_rejected_without_changes(moderation, db, make_issue):
    issue = make_issue()
    moderation.record_spam_report(issue.id, "r1", "Spam")

    with pytest.raises(Conflict):
        moderation.record_spam_report(issue.id, "r1", "Other")

    assert _issue(db, issue.id)["spam_votes"] == 1
    assert len(_reports_for(db, issue.id)) == 1


def test_invalid_reason(moderation, make_issue):
    issue = make_issue()
    with pytest.raises(ValidationError):
        moderation.record_spam_report(issue.id, "r1", "Boring")


def test_report_on_missing_issue(moderation, db):
    with pytest.raises(NotFound):
        moderation.record_spam_report("missing", "r1", "Spam")
    assert list(db.collection("spam_reports").stream()) == []


def test_restore_resets_state(moderation, activity, db, make_issue):
    issue = make_issue()
    for reporter in ("r1", "r2", "r3"):
        moderation.record_spam_report(issue.id, reporter, "Spam")

    restored = moderation.restore(issue.id, "admin-1")

    assert restored.is_visible is True
    assert restored.spam_votes == 0
    assert restored.status == "Reported"
    assert _reports_for(db, issue.id) == []

    records = [r for r in activity.list_for_issue(issue.id) if r.action == "Issue restored"]
    assert len(records) == 1
    assert records[0].note == "Issue manually restored by admin"
    assert records[0].updated_by == "admin-1"


def test_report_filed_during_restore_stays_counted(moderation, db, make_issue, monkeypatch):
    issue = make_issue()
    for reporter in ("r1", "r2", "r3"):
        moderation.record_spam_report(issue.id, reporter, "Spam")
    clear_reports = moderation.delete_reports_for_issue

    def clear_then_report(issue_id):
        cleared = clear_reports(issue_id)
        # Another citizen reports before the issue is made visible
        moderation.record_spam_report(issue_id, "r4", "Spam")
        return cleared

    monkeypatch.setattr(moderation, "delete_reports_for_issue", clear_then_report)
    restored = moderation.restore(issue.id, "admin-1")

    assert restored.is_visible is True
    assert restored.spam_votes == 1
    assert len(_reports_for(db, issue.id)) == 1
    with pytest.raises(Conflict):
        moderation.record_spam_report(issue.id, "r4", "Spam")


def test_stale_threshold_decision_does_not_hide_restored_issue(moderation, db, make_issue, monkeypatch):
    issue = make_issue()
    moderation.record_spam_report(issue.id, "r1", "Spam")
    moderation.record_spam_report(issue.id, "r2", "Spam")
    original_get = MockDocumentReference.get
    restored = []

    def restore_after_read(self, field_paths=None, transaction=None):
        snapshot = original_get(self, field_paths=field_paths, transaction=transaction)
        if (
            self._collection == "issues"
            and not restored
            and snapshot.exists
            and snapshot.to_dict().get("spam_votes") == 3
        ):
            restored.append(True)
            # An admin restores the issue right after the threshold check read it
            moderation.restore(issue.id, "admin-1")
        return snapshot

    monkeypatch.setattr(MockDocumentReference, "get", restore_after_read)
    result = moderation.record_spam_report(issue.id, "r3", "Spam")

    assert restored
    assert (result.spam_count, result.hidden) == (0, False)
    stored = _issue(db, issue.id)
    assert stored["is_visible"] is True
    assert stored["spam_votes"] == 0
    assert _reports_for(db, issue.id) == []


def test_clearing_reports_of_a_deleted_issue(moderation, db, make_issue):
    issue = make_issue()
    for reporter in ("r1", "r2"):
        moderation.record_spam_report(issue.id, reporter, "Spam")
    db.collection("issues").document(issue.id).delete()

    assert moderation.delete_reports_for_issue(issue.id) == 2
    assert _reports_for(db, issue.id) == []


def test_reporter_can_report_again_after_restore(moderation, make_issue):
    issue = make_issue()
    moderation.record_spam_report(issue.id, "r1", "Spam")
    moderation.restore(issue.id, "admin-1")

    result = moderation.record_spam_report(issue.id, "r1", "Spam")
    assert result.spam_count == 1


def test_hide_and_show_are_admin_overrides(moderation, db, make_issue):
    issue = make_issue()
    moderation.record_spam_report(issue.id, "r1", "Spam")

    hidden = moderation.hide(issue.id, "Offensive photo", "admin-1")
    assert hidden.is_visible is False
    assert hidden.spam_votes == 1

    shown = moderation.show(issue.id, "admin-1")
    assert shown.is_visible is True
    assert len(_reports_for(db, issue.id)) == 1


def test_review_spam_report(moderation, make_issue):
    issue = make_issue()
    moderation.record_spam_report(issue.id, "r1", "Spam")
    report_id = f"{issue.id}__r1"

    report = moderation.review_spam_report(report_id, "Dismissed", "admin-1", action_taken="No action needed")

    assert report.status == "Dismissed"
    assert report.reviewed_by == "admin-1"
    assert report.reviewed_at is not None
    assert report.action_taken == "No action needed"


@pytest.mark.parametrize("decision", ["Pending", "Approved", ""])
def test_review_rejects_other_decisions(moderation, make_issue, decision):
    issue = make_issue()
    moderation.record_spam_report(issue.id, "r1", "Spam")
    with pytest.raises(ValidationError):
        moderation.review_spam_report(f"{issue.id}__r1", decision, "admin-1")


def test_review_does_not_change_visibility(moderation, db, make_issue):
    issue = make_issue()
    for reporter in ("r1", "r2", "r3"):
        moderation.record_spam_report(issue.id, reporter, "Spam")
    moderation.review_spam_report(f"{issue.id}__r1", "Dismissed", "admin-1")
    assert _issue(db, issue.id)["is_visible"] is False


def test_review_missing_report(moderation):
    with pytest.raises(NotFound):
        moderation.review_spam_report("nope", "Reviewed", "admin-1")


def test_list_and_summary(moderation, make_issue):
    first = make_issue()
    second = make_issue(title="Graffiti")
    for reporter in ("r1", "r2", "r3"):
        moderation.record_spam_report(first.id, reporter, "Spam")
    moderation.record_spam_report(second.id, "r1", "Duplicate")
    moderation.review_spam_report(f"{second.id}__r1", "Reviewed", "admin-1")

    page = moderation.list_spam_reports(page=1, limit=2)
    assert len(page.reports) == 2
    assert page.pagination.total_items == 4
    assert page.pagination.total_pages == 2

    pending = moderation.list_spam_reports(status="Pending")
    assert pending.pagination.total_items == 3

    summary = moderation.spam_summary()
    assert summary.total_reports == 4
    assert summary.reason_breakdown == {"Spam": 3, "Duplicate": 1}
    assert summary.status_breakdown == {"Pending": 3, "Reviewed": 1}
    assert summary.hidden_issues == 1


def test_summary_lists_recent_reports_with_titles_and_reporters(moderation, add_user, make_issue):
    issue = make_issue(title="Graffiti on the bridge")
    add_user("neighbour")
    moderation.record_spam_report(issue.id, "neighbour", "Spam")
    moderation.record_spam_report(issue.id, "stranger", "Other")

    recent = {report.reported_by: report for report in moderation.spam_summary().recent_reports}
    assert set(recent) == {"neighbour", "stranger"}
    assert recent["neighbour"].issue_title == "Graffiti on the bridge"
    assert recent["neighbour"].reporter_username == "neighbour"
    assert recent["stranger"].reporter_username is None
    assert recent["stranger"].reason == "Other"


def test_summary_keeps_only_the_latest_reports(moderation, make_issue):
    issue = make_issue()
    for n in range(12):
        moderation.record_spam_report(issue.id, f"r{n}", "Spam")

    summary = moderation.spam_summary()
    assert summary.total_reports == 12
    assert len(summary.recent_reports) == 10


def test_threshold_must_be_positive(db, activity):
    with pytest.raises(ValueError):
        ModerationPolicy(db, activity, spam_threshold=0)
