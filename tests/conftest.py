import itertools
from datetime import datetime, timedelta

import pytest

from marketplace import create_app
from marketplace.config import TestConfig
from marketplace.extensions import db as _db
from marketplace.models.task import Task
from marketplace.models.user import User, Role
from marketplace.services.task_lifecycle import TaskLifecycle

PASSWORD = "secret123"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def app(tmp_path):
    """Fresh app on its own in-memory database and upload folder."""
    app = create_app(TestConfig)
    app.config["UPLOAD_FOLDER"] = str(tmp_path / "uploads")
    with app.app_context():
        _db.create_all()
    yield app
    with app.app_context():
        _db.session.remove()
        _db.drop_all()


# ---------------------------------------------------------------------------
# Service-level fixtures: one app context pushed for the whole test
# ---------------------------------------------------------------------------

@pytest.fixture
def db(app):
    with app.app_context():
        yield _db
        _db.session.remove()


@pytest.fixture
def publisher(app):
    """The in-memory publisher configured by TestConfig."""
    return app.extensions["event_publisher"]


@pytest.fixture
def cache(app):
    return app.extensions["entity_cache"]


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 5, 1, 9, 0, 0))


@pytest.fixture
def lifecycle(db, cache, clock):
    return TaskLifecycle(cache=cache, clock=clock)


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(username=None, role=Role.USER):
        username = username or f"user{next(counter)}"
        user = User(username=username, email=f"{username}@example.com", role=role,
                    first_name=username.capitalize())
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def customer(make_user):
    return make_user("alice")


@pytest.fixture
def freelancer(make_user):
    return make_user("bob")


@pytest.fixture
def make_task(lifecycle, customer):
    def _make(title="Translate a contract", owner=None, **fields):
        return lifecycle.create(Task(title=title, **fields), owner or customer)

    return _make


# ---------------------------------------------------------------------------
# HTTP fixtures: no app context held open, every request gets its own
# ---------------------------------------------------------------------------

@pytest.fixture
def add_user(app):
    """Create a user outside of any request and return its id."""
    def _add(username, role=Role.USER, password=PASSWORD):
        with app.app_context():
            user = User(username=username, email=f"{username}@example.com", role=role)
            user.set_password(password)
            _db.session.add(user)
            _db.session.commit()
            return user.id

    return _add


@pytest.fixture
def login_as(app, add_user):
    """Test client already logged in as a (new) user; returns (client, user_id)."""
    def _login(username, role=Role.USER):
        user_id = add_user(username, role=role)
        client = app.test_client()
        resp = client.post("/auth/login", json={"username": username, "password": PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        return client, user_id

    return _login


@pytest.fixture
def client(app):
    return app.test_client()
