# Overview: Pytest coverage for debtor CRUD and the debt ledger.

import pytest

from ombor.models import Debtor, DebtorLedgerEntry, Sale
from ombor.services import debtor_service
from ombor.validation import ConflictError, NotFoundError, ValidationError


def _entries(db_session, debtor_id):
    return (
        db_session.query(DebtorLedgerEntry)
        .filter_by(debtor_id=debtor_id)
        .order_by(DebtorLedgerEntry.id)
        .all()
    )


class TestDebtorCrud:

    def test_create_debtor(self, client, db_session):
        response = client.post("/api/debtors", json={"name": "Dilshod", "phone": "+998911112233"})

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["debt_amount"] == 0
        assert data["status"] == "paid"
        assert data["transactions"] == []

    def test_opening_balance_is_an_adjustment(self, client, db_session):
        response = client.post("/api/debtors", json={
            "name": "Dilshod", "phone": "+998911112233", "debt_amount": 7000,
        })

        data = response.get_json()["data"]
        assert data["debt_amount"] == 7000
        assert data["status"] == "active"
        assert [(e["type"], e["amount"]) for e in data["transactions"]] == [("adjustment", 7000)]

    def test_duplicate_phone_is_400(self, client, db_session, debtor):
        response = client.post("/api/debtors", json={"name": "Other", "phone": debtor.phone})

        assert response.status_code == 400
        assert response.get_json()["message"] == "A debtor with this phone number already exists"

    def test_missing_phone_is_400(self, client, db_session):
        response = client.post("/api/debtors", json={"name": "No Phone"})

        assert response.status_code == 400
        assert "phone" in response.get_json()["message"]

    def test_update_details(self, client, db_session, debtor):
        response = client.put(f"/api/debtors/{debtor.id}", json={"name": "Ali V.", "notes": "Pays Fridays"})

        data = response.get_json()["data"]
        assert data["name"] == "Ali V."
        assert data["notes"] == "Pays Fridays"

    def test_update_debt_amount_records_adjustment(self, client, db_session, debtor):
        client.put(f"/api/debtors/{debtor.id}", json={"debt_amount": 2500, "adjustment_notes": "Paper ledger"})

        entries = _entries(db_session, debtor.id)
        assert [(e.type, e.amount, e.notes) for e in entries] == [("adjustment", 2500, "Paper ledger")]
        db_session.refresh(debtor)
        assert debtor.status == "active"

    def test_update_to_taken_phone(self, client, db_session, debtor):
        client.post("/api/debtors", json={"name": "Other", "phone": "+998900000001"})

        response = client.put(f"/api/debtors/{debtor.id}", json={"phone": "+998900000001"})

        assert response.status_code == 400

    def test_get_missing_debtor(self, client, db_session):
        response = client.get("/api/debtors/123456")

        assert response.status_code == 404
        assert response.get_json()["message"] == "Debtor not found"

    def test_delete_debtor_unlinks_sales(self, client, db_session, product, debtor):
        sale_id = client.post("/api/sales", json={
            "items": [{"product": product.id, "quantity": 1}],
            "payment_method": "credit",
            "debtor_id": debtor.id,
        }).get_json()["data"]["id"]
        debtor_id = debtor.id

        response = client.delete(f"/api/debtors/{debtor_id}")

        assert response.status_code == 200
        assert response.get_json()["data"]["id"] == debtor_id
        assert db_session.get(Debtor, debtor_id) is None
        assert db_session.query(DebtorLedgerEntry).count() == 0
        assert db_session.get(Sale, sale_id).debtor_id is None


class TestDebtChanges:

    def test_add_then_subtract(self, client, db_session, debtor):
        response = client.patch(f"/api/debtors/{debtor.id}/debt", json={"amount": 3000, "type": "add", "notes": "Flour"})
        assert response.status_code == 200
        assert response.get_json()["message"] == "Debt added successfully"
        assert response.get_json()["data"]["debt_amount"] == 3000

        response = client.patch(f"/api/debtors/{debtor.id}/debt", json={"amount": 1000, "type": "subtract"})
        assert response.get_json()["message"] == "Debt reduced successfully"
        assert response.get_json()["data"]["debt_amount"] == 2000

        entries = _entries(db_session, debtor.id)
        assert [(e.type, e.amount) for e in entries] == [("adjustment", 3000), ("payment", -1000)]

    def test_subtract_is_clamped_at_zero(self, client, db_session, debtor):
        client.patch(f"/api/debtors/{debtor.id}/debt", json={"amount": 3000, "type": "add"})

        response = client.patch(f"/api/debtors/{debtor.id}/debt", json={"amount": 5000, "type": "subtract"})

        data = response.get_json()["data"]
        assert data["debt_amount"] == 0
        assert data["status"] == "paid"
        assert data["transactions"][-1]["amount"] == -3000

    def test_negative_amount_uses_magnitude(self, client, db_session, debtor):
        response = client.patch(f"/api/debtors/{debtor.id}/debt", json={"amount": -400, "type": "add"})

        assert response.get_json()["data"]["debt_amount"] == 400

    def test_zero_amount_rejected(self, client, db_session, debtor):
        response = client.patch(f"/api/debtors/{debtor.id}/debt", json={"amount": 0, "type": "add"})

        assert response.status_code == 400

    def test_invalid_direction(self, client, db_session, debtor):
        response = client.patch(f"/api/debtors/{debtor.id}/debt", json={"amount": 100, "type": "multiply"})

        assert response.status_code == 400

    def test_unknown_debtor(self, client, db_session):
        response = client.patch("/api/debtors/9999/debt", json={"amount": 100, "type": "add"})

        assert response.status_code == 404


class TestDebtorQueries:

    @pytest.fixture
    def ledger(self, db_session, debtor):
        other = debtor_service.create_debtor({"name": "Zarina", "phone": "+998935550000", "notes": "Bakery next door"})
        third = debtor_service.create_debtor({"name": "Karim", "phone": "+998977770000"})
        debtor_service.change_debt(debtor.id, amount=1000, direction="add")
        debtor_service.change_debt(other.id, amount=6000, direction="add")
        return debtor, other, third

    def test_active_lists_only_debtors_with_debt(self, client, ledger):
        body = client.get("/api/debtors/active").get_json()

        assert {d["name"] for d in body["data"]} == {"Ali Valiyev", "Zarina"}

    def test_status_filter(self, client, ledger):
        body = client.get("/api/debtors?status=paid").get_json()

        assert [d["name"] for d in body["data"]] == ["Karim"]

    def test_search_orders_by_debt(self, client, ledger):
        body = client.get("/api/debtors/search?query=%2B998").get_json()

        assert [d["name"] for d in body["data"]][:2] == ["Zarina", "Ali Valiyev"]

    def test_search_matches_notes(self, client, ledger):
        body = client.get("/api/debtors/search?query=bakery").get_json()

        assert [d["name"] for d in body["data"]] == ["Zarina"]

    def test_search_requires_query(self, client, ledger):
        response = client.get("/api/debtors/search?query=")

        assert response.status_code == 400
        assert response.get_json()["message"] == "Search query is required"

    def test_stats_totals(self, client, ledger):
        data = client.get("/api/debtors/stats/totals").get_json()["data"]

        assert data == {
            "total_debtors": 3,
            "active_debtors": 2,
            "paid_debtors": 1,
            "total_debt": 7000,
            "average_debt": 3500,
        }


class TestDebtorService:

    def test_status_follows_balance(self, db_session, debtor):
        debtor_service.change_debt(debtor.id, amount=10, direction="add")
        assert db_session.get(Debtor, debtor.id).status == "active"

        debtor_service.change_debt(debtor.id, amount=10, direction="subtract")
        assert db_session.get(Debtor, debtor.id).status == "paid"

    def test_create_duplicate_phone_raises_conflict(self, db_session, debtor):
        with pytest.raises(ConflictError):
            debtor_service.create_debtor({"name": "Copy", "phone": debtor.phone})

    def test_change_debt_validates_amount(self, db_session, debtor):
        with pytest.raises(ValidationError):
            debtor_service.change_debt(debtor.id, amount=0, direction="add")

    def test_get_missing(self, db_session):
        with pytest.raises(NotFoundError):
            debtor_service.get_debtor(4242)
