"""Tests for the shared error taxonomy."""

import pytest
from retail_common.errors import (
    ConcurrencyConflictError,
    EntityAlreadyExistsError,
    InsufficientStockError,
    MalformedMessageError,
    NotFoundError,
    RetailError,
    TransientInfrastructureError,
    ValidationError,
)


@pytest.mark.parametrize(
    "error, status_code, retriable",
    [
        (ValidationError("bad"), 400, False),
        (NotFoundError("missing"), 404, False),
        (InsufficientStockError(3), 400, False),
        (ConcurrencyConflictError("stale"), 409, True),
        (TransientInfrastructureError("down"), 503, True),
        (EntityAlreadyExistsError("dup"), 409, False),
        (MalformedMessageError("garbage"), 400, False),
    ],
)
def test_error_classification(error, status_code, retriable):
    assert isinstance(error, RetailError)
    assert error.status_code == status_code
    assert error.retriable is retriable


def test_insufficient_stock_message():
    error = InsufficientStockError(7)

    assert error.message == "Insufficient stock. Available: 7"
    assert error.available == 7
