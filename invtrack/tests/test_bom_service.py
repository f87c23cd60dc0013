"""Tests for BOM version resolution and maintenance."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from invtrack.models import BOMVersion
from invtrack.services import bom_service
from invtrack.services.exceptions import (
    NoBOMEffectiveOnDate,
    NotFoundOrAccessDenied,
    SkuNotFound,
    ValidationError,
)

from conftest import add_bom, add_stock


def _version(name, start, end=None, created_at=None):
    return BOMVersion(
        version_name=name,
        effective_start_date=start,
        effective_end_date=end,
        created_at=created_at or datetime(2025, 1, 1),
    )


class TestSelectEffectiveBomVersion:
    """The pure selection function."""

    def test_picks_latest_start_covering_date(self):
        older = _version("v1", date(2025, 1, 1))
        newer = _version("v2", date(2025, 2, 1))

        assert bom_service.select_effective_bom_version([older, newer], date(2025, 3, 1)) is newer
        assert bom_service.select_effective_bom_version([older, newer], date(2025, 1, 15)) is older

    def test_end_date_is_inclusive(self):
        version = _version("v1", date(2025, 1, 1), end=date(2025, 1, 31))

        assert bom_service.select_effective_bom_version([version], date(2025, 1, 31)) is version
        assert bom_service.select_effective_bom_version([version], date(2025, 2, 1)) is None

    def test_start_date_is_inclusive(self):
        version = _version("v1", date(2025, 1, 1))

        assert bom_service.select_effective_bom_version([version], date(2025, 1, 1)) is version
        assert bom_service.select_effective_bom_version([version], date(2024, 12, 31)) is None

    def test_overlap_tie_broken_by_newest_created_at(self):
        first = _version("a", date(2025, 1, 1), created_at=datetime(2025, 1, 1, 9, 0))
        second = _version("b", date(2025, 1, 1), created_at=datetime(2025, 1, 1, 10, 0))

        assert bom_service.select_effective_bom_version([second, first], date(2025, 1, 5)) is second
        assert bom_service.select_effective_bom_version([first, second], date(2025, 1, 5)) is second

    def test_mixed_naive_and_aware_created_at(self):
        stored = _version("stored", date(2025, 1, 1), created_at=datetime(2025, 1, 1, 9, 0))
        fresh = _version(
            "fresh", date(2025, 1, 1), created_at=datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)
        )

        assert bom_service.select_effective_bom_version([fresh, stored], date(2025, 1, 5)) is fresh

    def test_later_start_beats_newer_creation(self):
        late_start = _version("late", date(2025, 2, 1), created_at=datetime(2025, 1, 1))
        newest = _version("newest", date(2025, 1, 1), created_at=datetime(2025, 3, 1))

        assert bom_service.select_effective_bom_version([newest, late_start], date(2025, 3, 1)) is late_start

    def test_no_candidates(self):
        assert bom_service.select_effective_bom_version([], date(2025, 1, 1)) is None


class TestResolveBomVersion:
    def test_resolves_by_date(self, test_db, company, sku, widget, bom_v1):
        session = test_db()
        resolved = bom_service.resolve_bom_version(session, company.id, sku.id, date(2025, 6, 1))
        assert resolved.id == bom_v1.id

    def test_inactive_versions_are_candidates(self, test_db, company, sku, widget, bom_v1):
        draft = add_bom(test_db(), sku.id, "draft", date(2025, 5, 1), [(widget.id, 1)], is_active=False)

        resolved = bom_service.resolve_bom_version(test_db(), company.id, sku.id, date(2025, 6, 1))
        assert resolved.id == draft.id

    def test_raises_when_no_version_covers_date(self, test_db, company, sku, bom_v1):
        with pytest.raises(NoBOMEffectiveOnDate) as exc_info:
            bom_service.resolve_bom_version(test_db(), company.id, sku.id, date(2024, 6, 1))
        assert "2024-06-01" in str(exc_info.value)

    def test_explicit_version_wins(self, test_db, company, sku, widget, bom_v1):
        later = add_bom(test_db(), sku.id, "v2", date(2026, 1, 1), [(widget.id, 4)])

        resolved = bom_service.resolve_bom_version(
            test_db(), company.id, sku.id, date(2025, 6, 1), bom_version_id=later.id
        )
        assert resolved.id == later.id

    def test_explicit_version_of_another_company(self, test_db, other_company, sku, bom_v1):
        with pytest.raises(SkuNotFound):
            bom_service.resolve_bom_version(
                test_db(), other_company.id, sku.id, date(2025, 6, 1), bom_version_id=bom_v1.id
            )

    def test_unknown_explicit_version(self, test_db, company, sku, bom_v1):
        with pytest.raises(NotFoundOrAccessDenied):
            bom_service.resolve_bom_version(
                test_db(), company.id, sku.id, date(2025, 6, 1), bom_version_id="missing"
            )


class TestBomMaintenance:
    def test_create_bom_version(self, company, sku, widget, gadget):
        bom = bom_service.create_bom_version(
            company.id,
            sku.id,
            "v1",
            "2025-01-01",
            [
                {"component_id": widget.id, "quantity_per_unit": "2"},
                {"component_id": gadget.id, "quantity_per_unit": 1},
            ],
        )

        assert bom.version_name == "v1"
        assert bom.effective_start_date == date(2025, 1, 1)
        assert [line.position for line in bom.lines] == [0, 1]
        assert bom.is_active is False

    def test_create_active_version_supersedes_previous(self, test_db, company, sku, widget, bom_v1):
        bom_service.create_bom_version(
            company.id,
            sku.id,
            "v2",
            date(2025, 4, 1),
            [{"component_id": widget.id, "quantity_per_unit": 3}],
            is_active=True,
        )

        session = test_db()
        session.expire_all()
        previous = session.get(BOMVersion, bom_v1.id)
        assert previous.is_active is False
        assert previous.effective_end_date == date(2025, 4, 1)

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_create_rejects_non_positive_quantity(self, company, sku, widget, quantity):
        with pytest.raises(ValidationError):
            bom_service.create_bom_version(
                company.id,
                sku.id,
                "bad",
                "2025-01-01",
                [{"component_id": widget.id, "quantity_per_unit": quantity}],
            )

    def test_create_rejects_empty_lines(self, company, sku):
        with pytest.raises(ValidationError):
            bom_service.create_bom_version(company.id, sku.id, "empty", "2025-01-01", [])

    def test_create_rejects_foreign_component(self, test_db, company, other_company, sku):
        from conftest import add_component

        foreign = add_component(test_db(), other_company.id, "Foreign", "F-1")
        with pytest.raises(NotFoundOrAccessDenied):
            bom_service.create_bom_version(
                company.id,
                sku.id,
                "v1",
                "2025-01-01",
                [{"component_id": foreign.id, "quantity_per_unit": 1}],
            )

    def test_clone_bom_version(self, test_db, company, sku, widget, bom_v1):
        clone = bom_service.clone_bom_version(
            company.id, bom_v1.id, "v1-copy", effective_start_date="2025-05-01"
        )

        session = test_db()
        clone = session.get(BOMVersion, clone.id)
        assert clone.is_active is False
        assert clone.notes == "Cloned from v1"
        assert clone.effective_start_date == date(2025, 5, 1)
        assert [(line.component_id, Decimal(str(line.quantity_per_unit))) for line in clone.lines] == [
            (widget.id, Decimal("2"))
        ]

    def test_activate_bom_version(self, test_db, company, sku, widget, bom_v1):
        draft = add_bom(test_db(), sku.id, "v2", date(2025, 6, 1), [(widget.id, 1)])

        bom_service.activate_bom_version(company.id, draft.id, as_of=date(2025, 6, 1))

        session = test_db()
        session.expire_all()
        assert session.get(BOMVersion, draft.id).is_active is True
        previous = session.get(BOMVersion, bom_v1.id)
        assert previous.is_active is False
        assert previous.effective_end_date == date(2025, 6, 1)

    def test_activate_other_company_version(self, other_company, bom_v1):
        with pytest.raises(NotFoundOrAccessDenied):
            bom_service.activate_bom_version(other_company.id, bom_v1.id)


class TestBomCapacity:
    def test_unit_cost(self, company, bom_v1):
        # 2 x 2.50
        assert bom_service.calculate_bom_unit_cost(company.id, bom_v1.id) == Decimal("5")

    def test_max_buildable_units(self, test_db, company, company_location, sku, widget, bom_v1):
        add_stock(test_db(), company.id, widget.id, company_location.id, 9)

        assert bom_service.calculate_max_buildable_units(company.id, sku.id) == 4

    def test_max_buildable_never_negative(self, test_db, company, company_location, sku, widget, bom_v1):
        add_stock(test_db(), company.id, widget.id, company_location.id, -5)

        assert bom_service.calculate_max_buildable_units(company.id, sku.id) == 0

    def test_max_buildable_without_active_bom(self, company, sku):
        assert bom_service.calculate_max_buildable_units(company.id, sku.id) is None
