import itertools

import pytest

from civictrack.core.errors import InvalidTransition, NotFound, ValidationError
from civictrack.models.issue import IssueStatus
from civictrack.services.status_workflow import StatusWorkflowEngine

STATUSES = [status.value for status in IssueStatus]
ALLOWED = {
    ("Reported", "In Progress"),
    ("Reported", "Resolved"),
    ("In Progress", "Resolved"),
}


def _set_status(db, issue_id, status):
    db.collection("issues").document(issue_id).update({"status": status})


@pytest.mark.parametrize("current,requested", list(itertools.product(STATUSES, STATUSES)))
def test_is_valid_transition_matches_allowed_edges(current, requested):
    assert StatusWorkflowEngine.is_valid_transition(current, requested) == ((current, requested) in ALLOWED)


@pytest.mark.parametrize(
    "current,requested",
    [pair for pair in itertools.product(STATUSES, STATUSES) if pair not in ALLOWED],
)
def test_illegal_transition_leaves_issue_unchanged(db, workflow, make_issue, current, requested):
    issue = make_issue()
    _set_status(db, issue.id, current)
    before = db.collection("issues").document(issue.id).get().to_dict()

    with pytest.raises(InvalidTransition) as excinfo:
        workflow.transition(issue.id, requested, acting_principal="admin-1")

    assert excinfo.value.current_status == current
    assert excinfo.value.requested_status == requested
    assert db.collection("issues").document(issue.id).get().to_dict() == before


def test_transition_records_previous_status_and_metadata(workflow, activity, make_issue):
    issue = make_issue()

    updated = workflow.transition(
        issue.id,
        "In Progress",
        acting_principal="admin-1",
        note="Crew dispatched",
        priority="High",
        admin_notes="Check drainage too",
    )

    assert updated.status == "In Progress"
    assert updated.priority == "High"
    assert updated.admin_notes == "Check drainage too"
    assert updated.last_status_update is not None

    records = [r for r in activity.list_for_issue(issue.id) if r.action.startswith("Status changed")]
    assert len(records) == 1
    assert records[0].action == "Status changed to In Progress"
    assert records[0].updated_by == "admin-1"
    assert records[0].note == "Crew dispatched"
    assert records[0].metadata["previous_status"] == "Reported"
    assert records[0].metadata["priority"] == "High"


def test_resolved_is_terminal(workflow, make_issue):
    issue = make_issue()
    workflow.transition(issue.id, "Resolved", acting_principal="admin-1")

    assert StatusWorkflowEngine.get_allowed_transitions("Resolved") == []
    with pytest.raises(InvalidTransition) as excinfo:
        workflow.transition(issue.id, "In Progress", acting_principal="admin-1")
    assert excinfo.value.to_dict()["allowedTransitions"] == []


def test_unknown_status_is_a_validation_error(workflow, make_issue):
    issue = make_issue()
    with pytest.raises(ValidationError):
        workflow.transition(issue.id, "Closed", acting_principal="admin-1")


def test_unknown_priority_is_a_validation_error(workflow, make_issue):
    issue = make_issue()
    with pytest.raises(ValidationError):
        workflow.transition(issue.id, "Resolved", acting_principal="admin-1", priority="Urgent")


def test_missing_issue(workflow):
    with pytest.raises(NotFound):
        workflow.transition("missing", "Resolved", acting_principal="admin-1")


def test_allowed_transitions_from_reported():
    assert StatusWorkflowEngine.get_allowed_transitions("Reported") == ["In Progress", "Resolved"]
    assert StatusWorkflowEngine.get_allowed_transitions("bogus") == []
