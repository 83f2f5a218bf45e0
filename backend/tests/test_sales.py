# Overview: Pytest coverage for POS sales, credit posting and sale reversal.

"""
Sales Tests

- Checkout decrements stock and numbers sales S-000001, S-000002, ...
- payment_method=credit needs an existing debtor and raises their debt
- Deleting a sale returns stock and, for credit sales, refunds the debt
  (never below zero)
"""

import logging

import pytest
from sqlalchemy.exc import OperationalError

from ombor.models import DebtorLedgerEntry, Sale
from ombor.services import debtor_service, sales_service
from ombor.validation import LineItem, ValidationError


def _sell(client, lines, **extra):
    body = {"items": lines}
    body.update(extra)
    return client.post("/api/sales", json=body)


class TestCheckout:

    def test_cash_sale_decrements_stock(self, client, db_session, product):
        response = _sell(client, [{"product": product.id, "quantity": 2}])

        assert response.status_code == 201
        body = response.get_json()
        assert body["message"] == "Sale completed successfully"
        sale = body["data"]
        assert sale["sale_number"] == "S-000001"
        assert sale["payment_method"] == "cash"
        assert sale["total_amount"] == 2000
        assert sale["items"][0]["price"] == 1000
        assert sale["items"][0]["total"] == 2000
        assert sale["items"][0]["barcode"] == "4780000000011"
        assert sale["debtor_id"] is None

        db_session.refresh(product)
        assert product.quantity == 8

    def test_sale_numbers_are_sequential(self, client, db_session, product):
        numbers = [
            _sell(client, [{"product": product.id, "quantity": 1}]).get_json()["data"]["sale_number"]
            for _ in range(3)
        ]

        assert numbers == ["S-000001", "S-000002", "S-000003"]

    def test_explicit_line_price_wins(self, client, db_session, product):
        response = _sell(client, [{"product": product.id, "quantity": 2, "price": 900}], payment_method="card")

        assert response.get_json()["data"]["total_amount"] == 1800

    def test_insufficient_stock_rejects_whole_sale(self, client, db_session, product, second_product):
        response = _sell(client, [
            {"product": product.id, "quantity": 1},
            {"product": second_product.id, "quantity": 4},
        ])

        assert response.status_code == 400
        db_session.refresh(product)
        assert product.quantity == 10
        assert db_session.query(Sale).count() == 0

    def test_unknown_payment_method(self, client, db_session, product):
        response = _sell(client, [{"product": product.id, "quantity": 1}], payment_method="barter")

        assert response.status_code == 400

    def test_debtor_ignored_for_cash_sales(self, client, db_session, product, debtor):
        response = _sell(client, [{"product": product.id, "quantity": 1}], payment_method="cash", debtor_id=debtor.id)

        assert response.status_code == 201
        assert response.get_json()["data"]["debtor_id"] is None
        db_session.refresh(debtor)
        assert debtor.debt_amount == 0


class TestCreditSales:

    def test_credit_sale_charges_debtor(self, client, db_session, product, debtor):
        response = _sell(
            client,
            [{"product": product.id, "quantity": 5}],
            payment_method="credit",
            debtor_id=debtor.id,
        )

        assert response.status_code == 201
        sale = response.get_json()["data"]
        assert sale["debtor_id"] == debtor.id
        assert sale["debtor"]["name"] == "Ali Valiyev"

        db_session.refresh(debtor)
        assert debtor.debt_amount == 5000
        assert debtor.status == "active"
        assert debtor.last_transaction_date is not None

        entries = db_session.query(DebtorLedgerEntry).filter_by(debtor_id=debtor.id).all()
        assert len(entries) == 1
        assert entries[0].type == "sale"
        assert entries[0].amount == 5000
        assert entries[0].sale_id == sale["id"]

    def test_credit_without_debtor_is_400(self, client, db_session, product):
        response = _sell(client, [{"product": product.id, "quantity": 1}], payment_method="credit")

        assert response.status_code == 400
        assert response.get_json()["message"] == "debtor_id is required for credit sales"
        db_session.refresh(product)
        assert product.quantity == 10

    def test_credit_with_unknown_debtor_is_404(self, client, db_session, product):
        response = _sell(client, [{"product": product.id, "quantity": 1}], payment_method="credit", debtor_id=9999)

        assert response.status_code == 404
        assert response.get_json()["message"] == "Debtor not found"
        db_session.refresh(product)
        assert product.quantity == 10
        assert db_session.query(Sale).count() == 0

    def test_sales_for_debtor(self, client, db_session, product, debtor):
        _sell(client, [{"product": product.id, "quantity": 1}], payment_method="credit", debtor_id=debtor.id)
        _sell(client, [{"product": product.id, "quantity": 2}], payment_method="credit", debtor_id=debtor.id)
        _sell(client, [{"product": product.id, "quantity": 1}])

        body = client.get(f"/api/sales/debtor/{debtor.id}").get_json()

        assert body["data"]["count"] == 2
        assert body["data"]["total_amount"] == 3000
        assert body["data"]["debtor"]["debt_amount"] == 3000


class TestDeleteSale:

    def test_delete_credit_sale_restores_stock_and_debt(self, client, db_session, product, debtor):
        sale_id = _sell(
            client, [{"product": product.id, "quantity": 5}], payment_method="credit", debtor_id=debtor.id,
        ).get_json()["data"]["id"]

        response = client.delete(f"/api/sales/{sale_id}")

        assert response.status_code == 200
        assert response.get_json()["message"] == "Sale deleted and items returned to stock"
        db_session.refresh(product)
        db_session.refresh(debtor)
        assert product.quantity == 10
        assert debtor.debt_amount == 0
        assert debtor.status == "paid"

        types = [e.type for e in db_session.query(DebtorLedgerEntry).order_by(DebtorLedgerEntry.id).all()]
        assert types == ["sale", "refund"]

    def test_refund_is_clamped_at_zero(self, client, db_session, product, debtor):
        """Debt partly paid before the sale is deleted: refund only what is left."""
        sale_id = _sell(
            client, [{"product": product.id, "quantity": 5}], payment_method="credit", debtor_id=debtor.id,
        ).get_json()["data"]["id"]
        client.patch(f"/api/debtors/{debtor.id}/debt", json={"amount": 4000, "type": "subtract"})

        client.delete(f"/api/sales/{sale_id}")

        db_session.refresh(debtor)
        assert debtor.debt_amount == 0
        refund = db_session.query(DebtorLedgerEntry).filter_by(type="refund").one()
        assert refund.amount == -1000
        assert sum(e.amount for e in debtor.entries) == 0

    def test_delete_after_debtor_removed(self, client, db_session, product, debtor):
        sale_id = _sell(
            client, [{"product": product.id, "quantity": 2}], payment_method="credit", debtor_id=debtor.id,
        ).get_json()["data"]["id"]
        assert client.delete(f"/api/debtors/{debtor.id}").status_code == 200

        response = client.delete(f"/api/sales/{sale_id}")

        assert response.status_code == 200
        db_session.refresh(product)
        assert product.quantity == 10

    def test_delete_twice_is_404(self, client, db_session, product):
        sale_id = _sell(client, [{"product": product.id, "quantity": 2}]).get_json()["data"]["id"]

        client.delete(f"/api/sales/{sale_id}")
        response = client.delete(f"/api/sales/{sale_id}")

        assert response.status_code == 404
        db_session.refresh(product)
        assert product.quantity == 10


class TestDebtorStepFailures:
    """A failed debtor update is logged; the sale and its stock movement still commit."""

    @staticmethod
    def _locked_ledger(*args, **kwargs):
        raise OperationalError("UPDATE debtors", {}, Exception("database is locked"))

    def test_sale_commits_when_charge_fails(self, client, db_session, product, debtor, monkeypatch, caplog):
        monkeypatch.setattr(debtor_service, "apply_balance_change", self._locked_ledger)

        with caplog.at_level(logging.ERROR):
            response = _sell(
                client, [{"product": product.id, "quantity": 2}], payment_method="credit", debtor_id=debtor.id,
            )

        assert response.status_code == 201
        sale_number = response.get_json()["data"]["sale_number"]
        assert db_session.query(Sale).count() == 1
        db_session.refresh(product)
        db_session.refresh(debtor)
        assert product.quantity == 8
        assert debtor.debt_amount == 0
        assert db_session.query(DebtorLedgerEntry).count() == 0
        assert f"Failed to post sale {sale_number} to debtor {debtor.id}" in caplog.text

    def test_deletion_commits_when_refund_fails(self, client, db_session, product, debtor, monkeypatch, caplog):
        sale = _sell(
            client, [{"product": product.id, "quantity": 5}], payment_method="credit", debtor_id=debtor.id,
        ).get_json()["data"]
        monkeypatch.setattr(debtor_service, "apply_balance_change", self._locked_ledger)

        with caplog.at_level(logging.ERROR):
            response = client.delete(f"/api/sales/{sale['id']}")

        assert response.status_code == 200
        assert db_session.query(Sale).count() == 0
        db_session.refresh(product)
        db_session.refresh(debtor)
        assert product.quantity == 10
        assert debtor.debt_amount == 5000
        assert [e.type for e in db_session.query(DebtorLedgerEntry).all()] == ["sale"]
        assert f"Failed to refund sale {sale['sale_number']} to debtor {debtor.id}" in caplog.text


class TestSaleQueries:

    def test_list_paginates(self, client, db_session, product):
        for _ in range(3):
            _sell(client, [{"product": product.id, "quantity": 1}])

        body = client.get("/api/sales?limit=2&page=2").get_json()

        assert body["total"] == 3
        assert body["pages"] == 2
        assert body["current_page"] == 2
        assert body["count"] == 1

    def test_list_filters_by_payment_method(self, client, db_session, product):
        _sell(client, [{"product": product.id, "quantity": 1}], payment_method="card")
        _sell(client, [{"product": product.id, "quantity": 1}], payment_method="cash")

        body = client.get("/api/sales?payment_method=card").get_json()

        assert body["count"] == 1
        assert body["data"][0]["payment_method"] == "card"

    def test_today_summary(self, client, db_session, product, second_product):
        _sell(client, [{"product": product.id, "quantity": 1}], payment_method="cash")
        _sell(client, [
            {"product": product.id, "quantity": 1},
            {"product": second_product.id, "quantity": 1},
        ], payment_method="transfer")

        body = client.get("/api/sales/today").get_json()

        assert body["count"] == 2
        assert body["total_sales"] == 2500
        assert body["total_items"] == 3
        assert body["payment_stats"]["cash"] == 1000
        assert body["payment_stats"]["transfer"] == 1500
        assert body["payment_stats"]["credit"] == 0

    def test_stats_overview(self, client, db_session, product, debtor):
        _sell(client, [{"product": product.id, "quantity": 2}], payment_method="cash")
        _sell(client, [{"product": product.id, "quantity": 1}], payment_method="credit", debtor_id=debtor.id)

        data = client.get("/api/sales/stats").get_json()["data"]

        assert data["overview"]["total_sales"] == 3000
        assert data["overview"]["count"] == 2
        assert data["overview"]["cash_sales"] == 2000
        assert data["overview"]["credit_sales"] == 1000
        assert data["daily_stats"][-1]["total_sales"] == 3000
        assert data["debtor_stats"][0]["debtor_id"] == debtor.id
        assert data["debtor_stats"][0]["total_credit"] == 1000

    def test_update_notes_only(self, client, db_session, product):
        sale_id = _sell(client, [{"product": product.id, "quantity": 1}]).get_json()["data"]["id"]

        response = client.put(f"/api/sales/{sale_id}", json={"notes": "Gift wrap", "total_amount": 5})

        data = response.get_json()["data"]
        assert data["notes"] == "Gift wrap"
        assert data["total_amount"] == 1000


class TestSalesService:

    def test_credit_requires_debtor(self, db_session, product):
        with pytest.raises(ValidationError):
            sales_service.create_sale(
                items=[LineItem(product_id=product.id, quantity=1, price=None)],
                payment_method="credit",
            )

    def test_debtor_balance_matches_ledger(self, db_session, product, debtor):
        sale = sales_service.create_sale(
            items=[LineItem(product_id=product.id, quantity=3, price=None)],
            payment_method="credit",
            debtor_id=debtor.id,
        )
        debtor_service.change_debt(debtor.id, amount=500, direction="subtract")
        sales_service.delete_sale(sale.id)

        db_session.refresh(debtor)
        assert debtor.debt_amount == sum(e.amount for e in debtor.entries) == 0
