import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy.orm.exc import StaleDataError

from marketplace.errors import InvalidArgument, MarketplaceError, NotFound, StateConflict, Transient, VersionConflict
from marketplace.services.stores import TaskStore, UserStore, translate_db_error


@pytest.mark.parametrize("error, expected", [
    (StaleDataError("0 rows matched"), VersionConflict),
    (sa_exc.TimeoutError("QueuePool limit reached"), Transient),
    (sa_exc.OperationalError("SELECT 1", {}, Exception("server closed the connection")), Transient),
    (sa_exc.IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")), StateConflict),
    (sa_exc.InvalidRequestError("bad request"), MarketplaceError),
])
def test_translate_db_error(error, expected):
    translated = translate_db_error(error, "assign_freelancer", 5)
    assert type(translated) is expected
    assert translated.operation == "assign_freelancer"
    assert translated.entity_id == 5


def test_retryable_flags():
    assert translate_db_error(StaleDataError("x"), "edit").retryable
    assert translate_db_error(sa_exc.TimeoutError("x"), "edit").retryable
    assert not translate_db_error(sa_exc.IntegrityError("x", {}, Exception()), "edit").retryable


class BrokenSession:
    def get(self, model, ident):
        raise sa_exc.OperationalError("SELECT", {}, Exception("db down"))


def test_load_wraps_store_failure():
    with pytest.raises(Transient) as exc:
        TaskStore(session=BrokenSession()).load(3)
    assert exc.value.operation == "load_task"
    assert exc.value.entity_id == 3
    assert isinstance(exc.value.__cause__, sa_exc.OperationalError)


def test_load_unknown_and_missing_ids(db):
    store = TaskStore()
    with pytest.raises(NotFound):
        store.load(123)
    with pytest.raises(InvalidArgument):
        store.load(None)
    assert store.exists(123) is False


def test_read_goes_through_cache(db, make_user, cache):
    user = make_user("dora")
    store = UserStore(cache=cache)

    first = store.read(user.id)
    assert first["username"] == "dora"
    assert ("user", user.id) in cache

    # a stale cached snapshot is served until somebody invalidates it
    user.first_name = "Changed"
    db.session.commit()
    assert store.read(user.id)["firstName"] == "Dora"
    store.invalidate(user.id)
    assert store.read(user.id)["firstName"] == "Changed"


def test_find_by_username_and_email(db, make_user):
    user = make_user("erin")
    store = UserStore()
    assert store.find_by_username("erin") is user
    assert store.find_by_email("  ERIN@example.com ") is user
    assert store.find_by_username("nobody") is None


def test_delete_returns_whether_row_existed(db, make_user):
    user = make_user("frank")
    store = UserStore()
    assert store.delete(user.id) is True
    db.session.commit()
    assert store.delete(user.id) is False
