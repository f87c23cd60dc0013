"""Tests for structured service logging."""

import logging

import pytest

from invtrack.services import build_service
from invtrack.services.dto import BuildTransactionRequest
from invtrack.services.exceptions import InsufficientInventory
from invtrack.services.logging_utils import get_service_logger, log_operation


def _request(company, sku, units):
    return BuildTransactionRequest(
        company_id=company.id,
        created_by_id="user-1",
        date="2025-03-14",
        sku_id=sku.id,
        units_to_build=units,
    )


def _records(caplog, operation):
    return [record for record in caplog.records if getattr(record, "operation", None) == operation]


def test_get_service_logger_prefix():
    assert get_service_logger("invtrack.services.build_service").name == "invtrack.services.build_service"
    assert get_service_logger("lot_service").name == "invtrack.services.lot_service"


def test_log_operation_attaches_context(caplog):
    logger = get_service_logger("example")

    with caplog.at_level(logging.INFO, logger="invtrack.services"):
        log_operation(logger, operation="do_thing", outcome="success", sku_id="s-1")

    record = caplog.records[-1]
    assert record.getMessage() == "do_thing: success"
    assert record.outcome == "success"
    assert record.sku_id == "s-1"


def test_successful_build_logs_info(caplog, company, sku, bom_v1, stocked_widget):
    with caplog.at_level(logging.INFO, logger="invtrack.services"):
        result = build_service.create_build_transaction(_request(company, sku, 1))

    records = _records(caplog, "create_build_transaction")
    assert len(records) == 1
    assert records[0].levelno == logging.INFO
    assert records[0].outcome == "success"
    assert records[0].transaction_id == result.id
    assert records[0].bom_version_id == bom_v1.id


def test_rejected_build_logs_warning(caplog, company, sku, bom_v1):
    with caplog.at_level(logging.INFO, logger="invtrack.services"):
        with pytest.raises(InsufficientInventory):
            build_service.create_build_transaction(_request(company, sku, 1))

    records = _records(caplog, "create_build_transaction")
    assert [record.levelno for record in records] == [logging.WARNING]
    assert records[0].outcome == "insufficient_inventory"
    assert records[0].company_id == company.id
