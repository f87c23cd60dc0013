"""Tests for the build HTTP endpoints."""

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from invtrack.api import create_app
from invtrack.models import Transaction

from conftest import add_component, add_lot


@pytest.fixture
def client(test_db):
    return TestClient(create_app())


@pytest.fixture
def headers(company):
    return {"X-Company-Id": company.id, "X-User-Id": "user-1", "X-User-Role": "admin"}


def _body(sku, **kwargs):
    body = {"skuId": sku.id, "unitsToBuild": 10, "date": "2025-03-14"}
    body.update(kwargs)
    return body


class TestCreateBuildEndpoint:
    def test_build_returns_201(self, client, headers, sku, bom_v1, stocked_widget, balance_of, company_location):
        response = client.post("/api/transactions/build", json=_body(sku), headers=headers)

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "build"
        assert data["bomVersion"] == {"id": bom_v1.id, "versionName": "v1"}
        assert data["warning"] is False
        assert "insufficientItems" not in data
        line = data["lines"][0]
        assert line["component"]["id"] == stocked_widget.id
        assert line["lotId"] is None
        assert Decimal(line["quantityChange"]) == Decimal("-20")
        assert Decimal(data["unitBomCost"]) == Decimal("5")
        assert balance_of(stocked_widget.id, company_location.id) == Decimal("80")

    def test_defect_fields_round_trip(self, client, headers, sku, bom_v1, stocked_widget):
        response = client.post(
            "/api/transactions/build",
            json=_body(sku, defectCount=3, defectNotes="bent pins", affectedUnits=2),
            headers=headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["defectCount"] == 3
        assert data["defectNotes"] == "bent pins"
        assert data["affectedUnits"] == 2

        fetched = client.get(f"/api/transactions/{data['id']}", headers=headers).json()
        assert fetched["defectCount"] == 3

    def test_negative_defect_count_is_400(self, client, headers, sku, bom_v1, stocked_widget):
        response = client.post(
            "/api/transactions/build", json=_body(sku, defectCount=-1), headers=headers
        )

        assert response.status_code == 400
        assert "Defect count" in response.json()["message"]

    def test_insufficient_inventory_is_400(self, client, headers, sku, bom_v1, row_count):
        response = client.post("/api/transactions/build", json=_body(sku), headers=headers)

        assert response.status_code == 400
        data = response.json()
        assert "Insufficient inventory" in data["message"]
        assert data["insufficientItems"][0]["shortage"] == "20.0000"
        assert data["insufficientItems"][0]["componentName"] == "Widget"
        assert row_count(Transaction) == 0

    def test_allow_insufficient_flag_returns_warning(self, client, headers, sku, bom_v1):
        response = client.post(
            "/api/transactions/build",
            json=_body(sku, allowInsufficientInventory=True),
            headers=headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["warning"] is True
        assert data["insufficientItems"][0]["componentId"]

    def test_inventory_policy_wins_over_flag(self, client, headers, sku, bom_v1):
        response = client.post(
            "/api/transactions/build",
            json=_body(sku, allowInsufficientInventory=True, inventoryPolicy="force_block"),
            headers=headers,
        )

        assert response.status_code == 400

    def test_no_bom_effective_is_400(self, client, headers, sku, bom_v1):
        response = client.post("/api/transactions/build", json=_body(sku, date="2024-01-01"), headers=headers)

        assert response.status_code == 400
        assert "2024-01-01" in response.json()["message"]

    def test_unknown_sku_is_404(self, client, headers, sku):
        response = client.post(
            "/api/transactions/build",
            json={"skuId": "missing", "unitsToBuild": 1, "date": "2025-03-14"},
            headers=headers,
        )

        assert response.status_code == 404

    def test_cross_tenant_lot_override_is_400(
        self, test_db, client, headers, other_company, sku, widget, bom_v1, stocked_widget, row_count
    ):
        foreign_component = add_component(test_db(), other_company.id, "Foreign", "F-1")
        foreign_lot = add_lot(test_db(), foreign_component.id, "F-LOT", 100, date(2030, 1, 1))

        response = client.post(
            "/api/transactions/build",
            json=_body(
                sku,
                unitsToBuild=1,
                lotOverrides=[
                    {"componentId": widget.id, "allocations": [{"lotId": foreign_lot.id, "quantity": 2}]}
                ],
            ),
            headers=headers,
        )

        assert response.status_code == 400
        assert "not found or access denied" in response.json()["message"]
        assert row_count(Transaction) == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"unitsToBuild": 0},
            {"date": "not-a-date"},
            {"unitsToBuild": "ten"},
        ],
    )
    def test_malformed_body_is_400(self, client, headers, sku, bom_v1, overrides):
        response = client.post("/api/transactions/build", json=_body(sku, **overrides), headers=headers)

        assert response.status_code == 400
        assert "message" in response.json()

    def test_missing_identity_is_401(self, client, sku):
        response = client.post("/api/transactions/build", json=_body(sku))

        assert response.status_code == 401

    def test_viewer_is_403(self, client, headers, sku):
        response = client.post(
            "/api/transactions/build", json=_body(sku), headers={**headers, "X-User-Role": "viewer"}
        )

        assert response.status_code == 403


class TestOtherEndpoints:
    def test_check_endpoint_does_not_write(self, client, headers, sku, bom_v1, stocked_widget, row_count):
        response = client.post("/api/transactions/build/check", json=_body(sku), headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["canBuild"] is True
        assert data["requirements"][0]["componentId"] == stocked_widget.id
        assert row_count(Transaction) == 1

    def test_viewer_may_dry_run(self, client, headers, sku, bom_v1, stocked_widget):
        response = client.post(
            "/api/transactions/build/check", json=_body(sku), headers={**headers, "X-User-Role": "viewer"}
        )

        assert response.status_code == 200

    def test_get_transaction(self, client, headers, other_company, sku, bom_v1, stocked_widget):
        created = client.post("/api/transactions/build", json=_body(sku), headers=headers).json()

        response = client.get(f"/api/transactions/{created['id']}", headers=headers)
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

        foreign_headers = {**headers, "X-Company-Id": other_company.id}
        response = client.get(f"/api/transactions/{created['id']}", headers=foreign_headers)
        assert response.status_code == 404
        assert response.json() == {"message": "Transaction not found"}
