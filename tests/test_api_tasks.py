import pytest

from marketplace.models.user import Role


def _post_task(client, **overrides):
    body = {"title": "Translate a contract", "problem": "EN -> DE, 4 pages", "payment": 120,
            "deadline": "2030-01-15T18:00", "type": "TranslationAndLanguageServices"}
    body.update(overrides)
    return client.post("/rest/tasks/", json=body)


@pytest.fixture
def alice(login_as):
    return login_as("alice")


@pytest.fixture
def bob(login_as):
    return login_as("bob")


@pytest.fixture
def posted(alice):
    client, _ = alice
    resp = _post_task(client)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def _assign_bob(alice, bob, task_id):
    bob_client, _ = bob
    proposal = bob_client.post("/rest/proposals/", json={"taskId": task_id}).get_json()
    resp = alice[0].post(f"/rest/tasks/posted/{task_id}/proposals/{proposal['id']}")
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


def test_requires_login(client):
    resp = client.get("/rest/tasks/taskBoard")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "unauthorized"


def test_create_task(alice, publisher):
    client, alice_id = alice
    resp = _post_task(client)

    assert resp.status_code == 201
    task = resp.get_json()
    assert task["status"] == "UNASSIGNED"
    assert task["customerId"] == alice_id
    assert task["payment"] == 120.0
    assert task["deadline"] == "2030-01-15T18:00:00"
    assert publisher.kinds() == ["task_posted"]


def test_create_task_validation(alice):
    client, _ = alice
    resp = _post_task(client, title="")
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["status"] == 400
    assert body["error"] == "invalid_argument"
    assert "title" in body["message"]

    assert _post_task(client, type="Astrology").status_code == 400


def test_guest_cannot_create(login_as):
    client, _ = login_as("visitor", role=Role.GUEST)
    assert _post_task(client).status_code == 403


def test_get_task_and_missing_task(alice, posted):
    client, _ = alice
    assert client.get(f"/rest/tasks/{posted['id']}").get_json()["title"] == "Translate a contract"

    resp = client.get("/rest/tasks/999")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"


def test_full_flow_over_http(alice, bob, posted, publisher):
    task_id = posted["id"]
    alice_client, _ = alice
    bob_client, bob_id = bob

    proposal = bob_client.post("/rest/proposals/", json={"taskId": task_id})
    assert proposal.status_code == 201
    listed = alice_client.get(f"/rest/proposals/task/{task_id}").get_json()
    assert [p["freelancerId"] for p in listed] == [bob_id]

    assigned = alice_client.post(f"/rest/tasks/posted/{task_id}/proposals/{proposal.get_json()['id']}")
    assert assigned.get_json()["status"] == "ASSIGNED"
    assert assigned.get_json()["freelancerId"] == bob_id
    assert [t["id"] for t in bob_client.get("/rest/tasks/taken").get_json()] == [task_id]

    solution = bob_client.post(f"/rest/tasks/taken/{task_id}/attach-solution",
                               json={"link": "https://files.example.com/contract-de.pdf"})
    assert solution.status_code == 201
    assert solution.get_json()["taskId"] == task_id

    assert bob_client.post(f"/rest/tasks/taken/{task_id}").get_json()["status"] == "SUBMITTED"
    accepted = alice_client.post(f"/rest/tasks/posted/{task_id}/accept")
    assert accepted.get_json()["status"] == "ACCEPTED"

    assert publisher.kinds() == ["task_posted", "freelancer_assigned", "task_send_on_review", "task_accepted"]


def test_edit_after_assignment_conflicts(alice, bob, posted):
    _assign_bob(alice, bob, posted["id"])
    resp = alice[0].put(f"/rest/tasks/posted/{posted['id']}", json={"title": "Too late"})

    assert resp.status_code == 409
    body = resp.get_json()
    assert body["error"] == "state_conflict"
    assert body["operation"] == "edit"
    assert body["retryable"] is False


def test_edit_rejects_non_editable_fields(alice, posted):
    resp = alice[0].put(f"/rest/tasks/posted/{posted['id']}", json={"status": "ACCEPTED"})
    assert resp.status_code == 400


def test_edit_unassigned_task(alice, posted):
    resp = alice[0].put(f"/rest/tasks/posted/{posted['id']}",
                        json={"title": "Translate two contracts", "type": "WritingAndContentCreation"})
    assert resp.status_code == 200
    assert resp.get_json()["type"] == "WritingAndContentCreation"
    # cached snapshot was dropped
    assert alice[0].get(f"/rest/tasks/{posted['id']}").get_json()["title"] == "Translate two contracts"


@pytest.mark.parametrize("body", [
    {"title": 123},
    {"title": "x" * 201},
    {"deadline": 5},
    {"deadline": "next tuesday"},
    {"problem": {"text": "not a string"}},
    {"type": "Plumbing"},
])
def test_edit_rejects_malformed_values(alice, posted, body):
    resp = alice[0].put(f"/rest/tasks/posted/{posted['id']}", json=body)

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid_argument"
    assert resp.get_json()["operation"] == "edit"
    assert alice[0].get(f"/rest/tasks/{posted['id']}").get_json()["title"] == "Translate a contract"


def test_create_rejects_non_text_title(alice):
    resp = _post_task(alice[0], title=123)
    assert resp.status_code == 400


def test_freelancer_removes_themselves(alice, bob, posted, publisher):
    _assign_bob(alice, bob, posted["id"])
    resp = bob[0].post(f"/rest/tasks/{posted['id']}/remove-freelancer")

    assert resp.status_code == 200
    assert resp.get_json()["status"] == "UNASSIGNED"
    assert resp.get_json()["freelancerId"] is None
    assert publisher.kinds()[-1] == "freelancer_removed"
    assert bob[0].get("/rest/tasks/taken").get_json() == []


def test_stranger_cannot_delete(login_as, posted):
    client, _ = login_as("mallory")
    resp = client.delete(f"/rest/tasks/posted/{posted['id']}")
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "forbidden"


def test_admin_deletes_task(login_as, alice, posted):
    admin, _ = login_as("root", role=Role.ADMIN)
    assert admin.delete(f"/rest/tasks/posted/{posted['id']}").status_code == 204
    assert alice[0].get(f"/rest/tasks/{posted['id']}").status_code == 404
    assert alice[0].get("/rest/tasks/posted").get_json() == []


def test_task_board_lists_unassigned_by_posted_date(alice, bob, login_as):
    client, _ = alice
    first = _post_task(client, title="First", type="DigitalMarketing").get_json()
    second = _post_task(client, title="Second").get_json()
    third = _post_task(client, title="Third").get_json()
    _assign_bob(alice, bob, third["id"])

    carol, _ = login_as("carol")
    newest = carol.get("/rest/tasks/taskBoard").get_json()
    assert [t["id"] for t in newest] == [second["id"], first["id"]]

    oldest = carol.get("/rest/tasks/taskBoard?fromNewest=false").get_json()
    assert [t["id"] for t in oldest] == [first["id"], second["id"]]

    marketing = carol.get("/rest/tasks/taskBoard?type=DigitalMarketing").get_json()
    assert [t["title"] for t in marketing] == ["First"]


def test_posted_filters(alice, bob):
    client, _ = alice
    past = _post_task(client, title="Overdue", deadline="2001-01-01").get_json()
    future = _post_task(client, title="Upcoming").get_json()
    _assign_bob(alice, bob, future["id"])

    expired = client.get("/rest/tasks/posted?expired=true").get_json()
    assert [t["id"] for t in expired] == [past["id"]]

    assigned = client.get("/rest/tasks/posted?taskStatus=ASSIGNED").get_json()
    assert [t["id"] for t in assigned] == [future["id"]]

    assert client.get("/rest/tasks/posted?taskStatus=DONE").status_code == 400


def test_proposal_rules(alice, bob, posted):
    alice_client, _ = alice
    bob_client, _ = bob

    assert alice_client.post("/rest/proposals/", json={"taskId": posted["id"]}).status_code == 400
    assert bob_client.post("/rest/proposals/", json={"taskId": posted["id"]}).status_code == 201
    assert bob_client.post("/rest/proposals/", json={"taskId": posted["id"]}).status_code == 409
    assert bob_client.get(f"/rest/proposals/task/{posted['id']}").status_code == 403
    assert bob_client.post("/rest/proposals/", json={}).status_code == 400


def test_withdraw_proposal(alice, bob, posted):
    bob_client, _ = bob
    proposal = bob_client.post("/rest/proposals/", json={"taskId": posted["id"]}).get_json()

    assert alice[0].delete(f"/rest/proposals/{proposal['id']}").status_code == 403
    assert bob_client.delete(f"/rest/proposals/{proposal['id']}").status_code == 204
    assert alice[0].get(f"/rest/proposals/task/{posted['id']}").get_json() == []


def test_move_proposal_to_another_task(alice, bob, posted):
    alice_client, _ = alice
    bob_client, _ = bob
    other = _post_task(alice_client, title="Proofread a brochure").get_json()
    proposal = bob_client.post("/rest/proposals/", json={"taskId": posted["id"]}).get_json()

    resp = bob_client.put(f"/rest/proposals/{proposal['id']}", json={"id": proposal["id"], "taskId": other["id"]})

    assert resp.status_code == 200
    assert resp.get_json()["taskId"] == other["id"]
    assert alice_client.get(f"/rest/proposals/task/{posted['id']}").get_json() == []
    assert [p["id"] for p in alice_client.get(f"/rest/proposals/task/{other['id']}").get_json()] == [proposal["id"]]


def test_proposal_update_rules(alice, bob, login_as, posted):
    alice_client, _ = alice
    bob_client, _ = bob
    carol_client, _ = login_as("carol")
    other = _post_task(alice_client, title="Proofread a brochure").get_json()
    own = _post_task(bob_client, title="Bob's own task").get_json()
    proposal = bob_client.post("/rest/proposals/", json={"taskId": posted["id"]}).get_json()
    bob_client.post("/rest/proposals/", json={"taskId": other["id"]})
    url = f"/rest/proposals/{proposal['id']}"

    assert bob_client.put(url, json={"id": proposal["id"] + 1, "taskId": other["id"]}).status_code == 400
    assert bob_client.put(url, json={"taskId": "two"}).status_code == 400
    assert carol_client.put(url, json={"taskId": other["id"]}).status_code == 403
    assert bob_client.put(url, json={"taskId": own["id"]}).status_code == 400
    assert bob_client.put(url, json={"taskId": 9999}).status_code == 404
    # bob already bid on the other task
    assert bob_client.put(url, json={"taskId": other["id"]}).status_code == 409
    assert bob_client.get(url).get_json()["taskId"] == posted["id"]


def test_solution_update_and_delete(alice, bob, posted):
    _assign_bob(alice, bob, posted["id"])
    bob_client, _ = bob
    solution = bob_client.post(f"/rest/tasks/taken/{posted['id']}/attach-solution",
                               json={"description": "draft"}).get_json()

    updated = bob_client.put(f"/rest/solutions/{solution['id']}", json={"link": "https://files.example.com/v2"})
    assert updated.status_code == 200
    assert updated.get_json() == {"id": solution["id"], "taskId": posted["id"],
                                  "link": "https://files.example.com/v2", "description": "draft"}

    assert alice[0].delete(f"/rest/solutions/{solution['id']}").status_code == 403
    assert bob_client.delete(f"/rest/solutions/{solution['id']}").status_code == 204
    assert bob_client.get(f"/rest/tasks/{posted['id']}").get_json()["solutionId"] is None
    assert bob_client.get(f"/rest/solutions/{solution['id']}").status_code == 404
