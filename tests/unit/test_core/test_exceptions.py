"""Tests for exception types and problem-details rendering."""

from __future__ import annotations

import pytest

from webhook_relay.app.exception_handlers import _create_problem_detail
from webhook_relay.core.exceptions import (
    AppException,
    DeliveryError,
    NotFoundException,
    RelayError,
    RouteNotFoundError,
    TransformationError,
    ValidationException,
)


@pytest.mark.unit
class TestAppExceptions:
    def test_default_titles(self):
        assert AppException(400, "bad").title == "Bad Request"
        assert AppException(418, "teapot").title == "Error"

    def test_not_found(self):
        exc = NotFoundException(detail="Route x not found", extra={"route_id": "x"})

        assert exc.status_code == 404
        assert exc.type == "not-found"
        assert exc.extra == {"route_id": "x"}

    def test_validation(self):
        exc = ValidationException(detail="Invalid webhook payload")

        assert exc.status_code == 422
        assert exc.title == "Validation Error"
        assert exc.extra == {}


@pytest.mark.unit
class TestDeliveryError:
    def test_terminal_until_marked(self):
        exc = DeliveryError("returned HTTP 500", status_code=500)

        assert exc.is_terminal
        exc.mark_retry(next_attempt=2, delay_ms=1000)

        assert not exc.is_terminal
        assert (exc.next_attempt, exc.delay_ms) == (2, 1000)

    def test_hierarchy(self):
        assert issubclass(TransformationError, DeliveryError)
        assert issubclass(DeliveryError, RelayError)
        assert str(RouteNotFoundError("abc")) == "Route abc not found"


@pytest.mark.unit
def test_problem_detail_merges_extra_and_drops_none():
    body = _create_problem_detail(404, "Route x not found", type_="not-found", extra={"route_id": "x"})

    assert body == {
        "type": "not-found",
        "title": "Not Found",
        "status": 404,
        "detail": "Route x not found",
        "route_id": "x",
    }
