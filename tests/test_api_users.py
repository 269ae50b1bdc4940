from io import BytesIO
from pathlib import Path

from marketplace.models.user import Role


def _register(client, username="dora", email=None, password="secret123"):
    return client.post("/auth/register", json={
        "username": username,
        "email": email or f"{username}@example.com",
        "password": password,
        "firstName": "Dora",
    })


def test_register_logs_in_and_emits_event(client, publisher):
    resp = _register(client)

    assert resp.status_code == 201
    user = resp.get_json()
    assert user["username"] == "dora"
    assert user["role"] == "USER"
    assert "password" not in user and "passwordHash" not in user
    assert client.get("/auth/me").get_json()["id"] == user["id"]
    assert publisher.published == [("user_created", {"id": user["id"], "username": "dora",
                                                     "email": "dora@example.com"})]


def test_register_validation_and_duplicates(client, app):
    assert _register(client, password="short").status_code == 400
    assert _register(client, email="not-an-email").status_code == 400
    assert _register(client).status_code == 201

    other = app.test_client()
    assert _register(other).status_code == 409
    assert _register(other, username="dora2", email="DORA@example.com").status_code == 409


def test_login_logout(client, add_user):
    add_user("erin")

    bad = client.post("/auth/login", json={"username": "erin", "password": "wrong-pass1"})
    assert bad.status_code == 401

    ok = client.post("/auth/login", json={"username": "erin@example.com", "password": "secret123"})
    assert ok.status_code == 200
    assert client.post("/auth/logout").status_code == 204
    assert client.get("/auth/me").status_code == 401


def test_update_own_profile(login_as, publisher):
    client, user_id = login_as("frank")
    resp = client.put(f"/rest/users/{user_id}", json={"firstName": "Franklin", "email": "Frank@Example.com"})

    assert resp.status_code == 200
    assert resp.get_json()["firstName"] == "Franklin"
    assert resp.get_json()["email"] == "frank@example.com"
    assert publisher.kinds() == ["user_updated"]
    assert client.get(f"/rest/users/{user_id}").get_json()["firstName"] == "Franklin"


def test_update_someone_else_forbidden(login_as, add_user):
    client, _ = login_as("frank")
    other_id = add_user("gina")
    assert client.put(f"/rest/users/{other_id}", json={"firstName": "Hacked"}).status_code == 403


def test_password_change_takes_effect(login_as, app):
    client, user_id = login_as("hank")
    assert client.put(f"/rest/users/{user_id}", json={"password": "newpass456"}).status_code == 200

    fresh = app.test_client()
    assert fresh.post("/auth/login", json={"username": "hank", "password": "secret123"}).status_code == 401
    assert fresh.post("/auth/login", json={"username": "hank", "password": "newpass456"}).status_code == 200


def test_list_users_admin_only(login_as):
    user_client, _ = login_as("ivan")
    assert user_client.get("/rest/users/").status_code == 403

    admin, _ = login_as("root", role=Role.ADMIN)
    names = [u["username"] for u in admin.get("/rest/users/").get_json()]
    assert names == ["ivan", "root"]


def test_delete_user_with_tasks_refused(login_as, publisher):
    client, user_id = login_as("judy")
    client.post("/rest/tasks/", json={"title": "Keep me"})

    resp = client.delete(f"/rest/users/{user_id}")
    assert resp.status_code == 409
    assert "user_deleted" not in publisher.kinds()


def test_delete_self(login_as, publisher):
    admin, _ = login_as("root", role=Role.ADMIN)
    client, user_id = login_as("kate")
    assert client.delete(f"/rest/users/{user_id}").status_code == 204
    assert publisher.published[-1] == ("user_deleted", {"id": user_id, "username": "kate",
                                                        "email": "kate@example.com"})

    assert admin.get(f"/rest/users/{user_id}").status_code == 404


def test_feedback_updates_rating(login_as, add_user):
    alice, _ = login_as("alice")
    bob, _ = login_as("bob")
    target = add_user("tom")

    assert alice.post("/rest/feedback/", json={"receiverId": target, "rating": 5, "comment": "great"}).status_code == 201
    fb = bob.post("/rest/feedback/", json={"receiverId": target, "rating": 2}).get_json()
    assert alice.get(f"/rest/users/{target}").get_json()["rating"] == 3.5

    received = alice.get(f"/rest/feedback/user/{target}").get_json()
    assert sorted(f["rating"] for f in received) == [2, 5]

    assert alice.delete(f"/rest/feedback/{fb['id']}").status_code == 403
    assert bob.delete(f"/rest/feedback/{fb['id']}").status_code == 204
    assert alice.get(f"/rest/users/{target}").get_json()["rating"] == 5.0


def test_feedback_validation(login_as, add_user):
    client, me = login_as("alice")
    target = add_user("tom")

    assert client.post("/rest/feedback/", json={"receiverId": me, "rating": 4}).status_code == 400
    assert client.post("/rest/feedback/", json={"receiverId": target, "rating": 6}).status_code == 400
    assert client.post("/rest/feedback/", json={"receiverId": 999, "rating": 4}).status_code == 404


def test_get_user_by_username(login_as, add_user):
    client, _ = login_as("alice")
    tom_id = add_user("tom")

    resp = client.get("/rest/users/username/tom")
    assert resp.status_code == 200
    assert resp.get_json()["id"] == tom_id
    assert client.get("/rest/users/username/nobody").status_code == 404


# ---------------------------------------------------------------------------
# resume
# ---------------------------------------------------------------------------

def _upload(client, data=b"%PDF-1.4 resume", name="cv.pdf", **form):
    return client.post("/rest/users/addResume", data={"content": (BytesIO(data), name), **form},
                       content_type="multipart/form-data")


def test_upload_and_download_resume(login_as):
    client, user_id = login_as("kate")

    resp = _upload(client)
    assert resp.status_code == 201
    assert resp.headers["Location"].endswith("/rest/users/myResume")
    meta = resp.get_json()
    assert meta["userId"] == user_id
    assert meta["filename"] == "cv.pdf"
    assert meta["sizeBytes"] == len(b"%PDF-1.4 resume")

    mine = client.get("/rest/users/myResume")
    assert mine.status_code == 200
    assert mine.data == b"%PDF-1.4 resume"
    assert "cv.pdf" in mine.headers["Content-Disposition"]

    other, _ = login_as("olga")
    assert other.get(f"/rest/users/{user_id}/resume").data == b"%PDF-1.4 resume"


def test_new_resume_replaces_old_one(login_as, app):
    client, user_id = login_as("kate")
    _upload(client)
    resp = _upload(client, data=b"second", name="ignored.txt", filename="kate-2024.txt")

    assert resp.get_json()["filename"] == "kate-2024.txt"
    assert client.get("/rest/users/myResume").data == b"second"
    stored = Path(app.config["UPLOAD_FOLDER"]) / "resumes" / str(user_id)
    assert [p.name for p in stored.iterdir()] == ["kate-2024.txt"]


def test_resume_errors(login_as):
    client, _ = login_as("kate")

    assert client.get("/rest/users/myResume").status_code == 404
    assert _upload(client, name="payload.exe").status_code == 400
    assert client.post("/rest/users/addResume", data={}, content_type="multipart/form-data").status_code == 400
    assert client.get("/rest/users/9999/resume").status_code == 404


def test_deleting_user_removes_resume_file(login_as, app):
    client, user_id = login_as("kate")
    _upload(client)
    stored = Path(app.config["UPLOAD_FOLDER"]) / "resumes" / str(user_id) / "cv.pdf"
    assert stored.exists()

    assert client.delete(f"/rest/users/{user_id}").status_code == 204
    assert not stored.exists()
