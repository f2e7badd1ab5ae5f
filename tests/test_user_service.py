from datetime import datetime, timedelta, timezone

import pytest

from civictrack.core.errors import NotFound, ValidationError


@pytest.fixture
def people(db):
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    rows = {
        "u1": {"username": "Asha", "email": "asha@example.org", "is_banned": False, "created_at": base},
        "u2": {"username": "ravi", "email": "ravi@CityMail.in", "is_banned": True, "created_at": base + timedelta(days=1)},
        "u3": {"username": "meera", "email": None, "is_banned": False, "created_at": base + timedelta(days=2)},
        "u4": {"username": "legacy", "is_banned": False},
    }
    for user_id, data in rows.items():
        db.collection("users").document(user_id).set({"role": "user", "issues_reported": 0, **data})
    return rows


def test_list_users_newest_first(users, people):
    page = users.list_users()
    assert [user.id for user in page.users] == ["u3", "u2", "u1", "u4"]
    assert page.pagination.total_items == 4
    assert page.users[1].email == "ravi@CityMail.in"


def test_list_users_search_matches_username_or_email(users, people):
    assert [user.id for user in users.list_users(search="asha").users] == ["u1"]
    assert [user.id for user in users.list_users(search="citymail").users] == ["u2"]
    assert users.list_users(search="nobody").pagination.total_items == 0


def test_list_users_ban_filter_and_paging(users, people):
    assert [user.id for user in users.list_users(is_banned=True).users] == ["u2"]

    second = users.list_users(is_banned=False, page=2, limit=2)
    assert [user.id for user in second.users] == ["u4"]
    assert second.pagination.total_pages == 2
    assert second.pagination.has_prev is True
    assert second.pagination.has_next is False


def test_ban_requires_reason(users, people):
    with pytest.raises(ValidationError):
        users.ban("u1", "  ", "admin-1")
    with pytest.raises(NotFound):
        users.ban("ghost", "Abuse", "admin-1")
