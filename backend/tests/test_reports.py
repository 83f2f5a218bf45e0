# Overview: Pytest coverage for transaction stats and the grouped sales report.

from datetime import datetime

import pytest

from ombor.extensions import db
from ombor.models import Transaction
from ombor.services import reporting_service
from ombor.services.reporting_service import ReportError


@pytest.fixture
def history(db_session):
    """Sale transactions across two months plus one purchase, inserted directly."""
    rows = [
        Transaction(type="sale", total_amount=3000, total_cost=1800, profit=1200, created_at=datetime(2026, 9, 1, 10, 0)),
        Transaction(type="sale", total_amount=1000, total_cost=600, profit=400, created_at=datetime(2026, 9, 1, 15, 0)),
        Transaction(type="sale", total_amount=2000, total_cost=1500, profit=500, created_at=datetime(2026, 10, 2, 9, 0)),
        Transaction(type="purchase", total_amount=9000, total_cost=9000, profit=0, created_at=datetime(2026, 10, 2, 9, 30)),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


class TestSalesReport:

    def test_group_by_day(self, client, history):
        data = client.get("/api/transactions/report/sales?group_by=day").get_json()["data"]

        assert data["group_by"] == "day"
        assert data["rows"] == [
            {"period": "2026-10-02", "total_sales": 2000, "total_profit": 500, "transaction_count": 1},
            {"period": "2026-09-01", "total_sales": 4000, "total_profit": 1600, "transaction_count": 2},
        ]

    def test_group_by_year(self, client, history):
        rows = client.get("/api/transactions/report/sales?group_by=year").get_json()["data"]["rows"]

        assert rows == [{"period": "2026", "total_sales": 6000, "total_profit": 2100, "transaction_count": 3}]

    def test_date_range(self, client, history):
        rows = client.get(
            "/api/transactions/report/sales?group_by=month&start_date=2026-10-01&end_date=2026-10-31"
        ).get_json()["data"]["rows"]

        assert [r["period"] for r in rows] == ["2026-10"]

    def test_invalid_group_by(self, client, history):
        response = client.get("/api/transactions/report/sales?group_by=week")

        assert response.status_code == 400
        assert response.get_json()["message"] == "group_by must be day, month, or year"

    def test_service_rejects_unknown_grouping(self, history):
        with pytest.raises(ReportError):
            reporting_service.transaction_sales_report(group_by="hour")


class TestTransactionStats:

    def test_totals_by_type(self, client, history):
        data = client.get("/api/transactions/stats").get_json()["data"]

        assert data["total_sales"] == 6000
        assert data["total_purchases"] == 9000
        assert data["total_profit"] == 2100
        assert data["total_transactions"] == 4
        assert data["sale_count"] == 3
        assert data["purchase_count"] == 1
        assert data["return_count"] == 0

    def test_end_date_covers_whole_day(self, client, history):
        data = client.get("/api/transactions/stats?start_date=2026-09-01&end_date=2026-09-01").get_json()["data"]

        assert data["sale_count"] == 2
        assert data["total_sales"] == 4000
