import pytest

from marketplace.errors import (
    Forbidden, InvalidArgument, MarketplaceError, NotFound, StateConflict, Transient, VersionConflict,
)


@pytest.mark.parametrize("error, status, retryable", [
    (InvalidArgument("x"), 400, False),
    (Forbidden("x"), 403, False),
    (NotFound("x"), 404, False),
    (StateConflict("x"), 409, False),
    (VersionConflict("x"), 409, True),
    (Transient("x"), 503, True),
])
def test_taxonomy(error, status, retryable):
    assert isinstance(error, MarketplaceError)
    assert error.status_code == status
    assert error.retryable is retryable


def test_with_context_keeps_innermost():
    err = NotFound("Task identified by 4 not found.", operation="load_task", entity_id=4)
    err.with_context("accept", 99)
    assert (err.operation, err.entity_id) == ("load_task", 4)
    assert str(err) == "load_task[4]: Task identified by 4 not found."

    bare = StateConflict("nope").with_context("edit", 7)
    assert (bare.operation, bare.entity_id) == ("edit", 7)


def test_transient_maps_to_503(app, client):
    def flaky():
        raise Transient("database connection pool timed out", operation="load_task", entity_id=1)

    app.add_url_rule("/flaky", "flaky", flaky)
    resp = client.get("/flaky")

    assert resp.status_code == 503
    body = resp.get_json()
    assert body["error"] == "transient"
    assert body["retryable"] is True
    assert body["entityId"] == 1
    assert "timestamp" in body


def test_unknown_route_is_json_404(client):
    resp = client.get("/no/such/page")
    assert resp.status_code == 404
    assert resp.get_json()["status"] == 404


def test_unexpected_error_hides_details(app, client):
    def broken():
        raise KeyError("secret internals")

    app.add_url_rule("/broken", "broken", broken)
    resp = client.get("/broken")
    assert resp.status_code == 500
    assert "secret" not in resp.get_data(as_text=True)


def test_health(client):
    assert client.get("/health").get_json()["status"] == "ok"
