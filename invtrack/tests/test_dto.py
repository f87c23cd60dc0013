"""Tests for transaction request validation."""

from datetime import date
from decimal import Decimal

import pytest

from invtrack.models import InventoryPolicy, TransactionType
from invtrack.services.dto import (
    AdjustmentTransactionRequest,
    BuildTransactionRequest,
    InitialTransactionRequest,
    LotAllocation,
    LotOverride,
    ReceiptTransactionRequest,
    TransferTransactionRequest,
)
from invtrack.services.exceptions import ValidationError


def _build(**kwargs):
    defaults = dict(company_id="co", created_by_id="u", date="2025-03-14", sku_id="sku", units_to_build=1)
    defaults.update(kwargs)
    return BuildTransactionRequest(**defaults)


class TestBuildRequest:
    def test_valid_request_normalizes_fields(self):
        request = _build(
            inventory_policy="force_allow",
            lot_overrides=[LotOverride("c1", [LotAllocation("l1", "2.5")])],
        )

        request.validate()

        assert request.transaction_date == date(2025, 3, 14)
        assert request.inventory_policy is InventoryPolicy.FORCE_ALLOW
        assert request.lot_overrides[0].allocations[0].quantity == Decimal("2.5")
        assert request.kind is TransactionType.BUILD

    def test_collects_every_error(self):
        request = _build(company_id="", sku_id="", units_to_build=0, date="")

        with pytest.raises(ValidationError) as exc_info:
            request.validate()

        assert len(exc_info.value.errors) == 4

    def test_unknown_policy(self):
        with pytest.raises(ValidationError):
            _build(inventory_policy="sometimes").validate()

    def test_duplicate_override_component(self):
        request = _build(
            lot_overrides=[
                LotOverride("c1", [LotAllocation("l1", 1)]),
                LotOverride("c1", [LotAllocation("l2", 1)]),
            ]
        )
        with pytest.raises(ValidationError) as exc_info:
            request.validate()
        assert "Duplicate lot override" in str(exc_info.value)

    def test_duplicate_lot_within_override(self):
        request = _build(lot_overrides=[LotOverride("c1", [LotAllocation("l1", 1), LotAllocation("l1", 2)])])
        with pytest.raises(ValidationError):
            request.validate()

    @pytest.mark.parametrize("quantity", [0, -1, "abc", None])
    def test_bad_allocation_quantity(self, quantity):
        request = _build(lot_overrides=[LotOverride("c1", [LotAllocation("l1", quantity)])])
        with pytest.raises(ValidationError):
            request.validate()

    def test_empty_override(self):
        with pytest.raises(ValidationError):
            _build(lot_overrides=[LotOverride("c1", [])]).validate()

    def test_defect_fields(self):
        _build(defect_count=0, affected_units=3, defect_notes="scratches").validate()

        with pytest.raises(ValidationError) as exc_info:
            _build(defect_count=-1, affected_units=True).validate()

        assert exc_info.value.errors == [
            "Defect count must be a non-negative integer",
            "Affected units must be a non-negative integer",
        ]

    def test_output_quantity_defaults_to_units(self):
        assert _build(units_to_build=5).effective_output_quantity == 5
        assert _build(units_to_build=5, output_quantity=2).effective_output_quantity == 2

    def test_override_for(self):
        override = LotOverride("c1", [LotAllocation("l1", 1)])
        request = _build(lot_overrides=[override])

        assert request.override_for("c1") is override
        assert request.override_for("c2") is None


class TestOtherRequests:
    def test_initial_requires_positive_quantity(self):
        request = InitialTransactionRequest(
            company_id="co", created_by_id="u", date="2025-01-01", component_id="c", quantity="-1"
        )
        with pytest.raises(ValidationError):
            request.validate()

    def test_receipt_expiry_needs_lot_number(self):
        request = ReceiptTransactionRequest(
            company_id="co",
            created_by_id="u",
            date="2025-01-01",
            component_id="c",
            quantity=5,
            expiry_date="2026-01-01",
        )
        with pytest.raises(ValidationError) as exc_info:
            request.validate()
        assert "lot number" in str(exc_info.value)

    def test_receipt_parses_expiry(self):
        request = ReceiptTransactionRequest(
            company_id="co",
            created_by_id="u",
            date="2025-01-01",
            component_id="c",
            quantity="5",
            lot_number=" L-1 ",
            expiry_date="2026-01-01",
        )
        request.validate()

        assert request.expiry_date == date(2026, 1, 1)
        assert request.lot_number == "L-1"
        assert request.quantity == Decimal("5")

    def test_adjustment_rejects_zero_and_missing_reason(self):
        request = AdjustmentTransactionRequest(
            company_id="co", created_by_id="u", date="2025-01-01", component_id="c", quantity=0, reason=" "
        )
        with pytest.raises(ValidationError) as exc_info:
            request.validate()
        assert len(exc_info.value.errors) == 2

    def test_adjustment_allows_negative(self):
        request = AdjustmentTransactionRequest(
            company_id="co", created_by_id="u", date="2025-01-01", component_id="c", quantity="-3", reason="damaged"
        )
        request.validate()
        assert request.quantity == Decimal("-3")

    def test_transfer_to_same_location(self):
        request = TransferTransactionRequest(
            company_id="co",
            created_by_id="u",
            date="2025-01-01",
            component_id="c",
            quantity=1,
            from_location_id="loc",
            to_location_id="loc",
        )
        with pytest.raises(ValidationError) as exc_info:
            request.validate()
        assert "same location" in str(exc_info.value)
