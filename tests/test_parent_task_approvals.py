# tests/test_parent_task_approvals.py

def seed_task_approval(fake_db, gig_id=None, parent_id="parent-1", status="pending"):
    return fake_db.add_row("parent_approvals", teen_id="teen-1", parent_id=parent_id, gig_id=gig_id, status=status)


def test_list_attaches_task_titles(client, login_as, mock_parent_user, fake_db):
    task = fake_db.add_row("tasks", title="Walk the dog")
    seed_task_approval(fake_db, gig_id=task["id"])
    seed_task_approval(fake_db, gig_id="gone")
    login_as(mock_parent_user)

    response = client.get("/parent-approvals")

    assert response.status_code == 200
    titles = sorted(a["task_title"] for a in response.json())
    assert titles == ["Unknown Task", "Walk the dog"]


def test_pending_filter(client, login_as, mock_parent_user, fake_db):
    seed_task_approval(fake_db)
    seed_task_approval(fake_db, status="approved")
    login_as(mock_parent_user)

    response = client.get("/parent-approvals", params={"pending": "true"})

    assert [a["status"] for a in response.json()] == ["pending"]


def test_only_own_rows_are_listed(client, login_as, mock_parent_user, fake_db):
    seed_task_approval(fake_db, parent_id="parent-9")
    login_as(mock_parent_user)

    assert client.get("/parent-approvals").json() == []


def test_reject_stores_reason(client, login_as, mock_parent_user, fake_db):
    row = seed_task_approval(fake_db)
    login_as(mock_parent_user)

    response = client.post(
        f"/parent-approvals/{row['id']}/decision",
        json={"action": "reject", "reason": "School night"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert row["status"] == "rejected"
    assert row["reason"] == "School night"
    assert "rejected_at" not in row


def test_approve_then_reject_conflicts(client, login_as, mock_parent_user, fake_db):
    row = seed_task_approval(fake_db)
    login_as(mock_parent_user)
    url = f"/parent-approvals/{row['id']}/decision"

    assert client.post(url, json={"action": "approve"}).status_code == 200
    assert client.post(url, json={"action": "reject"}).status_code == 409
    assert row["status"] == "approved"


def test_other_parents_row_is_not_found(client, login_as, mock_parent_user, fake_db):
    row = seed_task_approval(fake_db, parent_id="parent-9")
    login_as(mock_parent_user)

    response = client.post(f"/parent-approvals/{row['id']}/decision", json={"action": "approve"})

    assert response.status_code == 404
    assert row["status"] == "pending"


def test_teens_cannot_decide(client, login_as, mock_teen_user, fake_db):
    row = seed_task_approval(fake_db)
    login_as(mock_teen_user)

    response = client.post(f"/parent-approvals/{row['id']}/decision", json={"action": "approve"})

    assert response.status_code == 403


def test_unknown_action_is_rejected(client, login_as, mock_parent_user, fake_db):
    row = seed_task_approval(fake_db)
    login_as(mock_parent_user)

    response = client.post(f"/parent-approvals/{row['id']}/decision", json={"action": "maybe"})

    assert response.status_code == 400
    assert row["status"] == "pending"
