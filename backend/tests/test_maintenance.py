# Overview: Pytest coverage for counter reconciliation and the CLI commands.

from ombor.extensions import db
from ombor.models import Category, Debtor, Product
from ombor.services import debtor_service, maintenance_service


def _corrupt_count(category_id, value):
    db.session.get(Category, category_id).product_count = value
    db.session.commit()


class TestReconcile:

    def test_clean_database_has_no_drift(self, db_session, product, debtor):
        debtor_service.change_debt(debtor.id, amount=500, direction="add")

        result = maintenance_service.reconcile()

        assert result == {"categories": [], "debtors": [], "fixed": False}

    def test_reports_category_drift_without_fixing(self, db_session, product):
        _corrupt_count(product.category_id, 5)

        result = maintenance_service.reconcile()

        assert result["categories"] == [{
            "category_id": product.category_id,
            "name": "Ichimliklar",
            "stored": 5,
            "actual": 1,
        }]
        assert result["fixed"] is False
        assert db_session.get(Category, product.category_id).product_count == 5

    def test_fix_rewrites_category_count(self, db_session, product):
        _corrupt_count(product.category_id, 5)

        result = maintenance_service.reconcile(fix=True)

        assert result["fixed"] is True
        db_session.expire_all()
        assert db_session.get(Category, product.category_id).product_count == 1

    def test_debtor_drift_is_reported_only(self, db_session, debtor):
        debtor_row = db_session.get(Debtor, debtor.id)
        debtor_row.debt_amount = 900
        db_session.commit()

        result = maintenance_service.reconcile(fix=True)

        assert result["debtors"] == [{
            "debtor_id": debtor.id,
            "name": "Ali Valiyev",
            "debt_amount": 900,
            "ledger_total": 0,
        }]
        assert result["fixed"] is False


class TestCommands:

    def test_reconcile_command(self, app, db_session, product):
        _corrupt_count(product.category_id, 3)
        runner = app.test_cli_runner()

        result = runner.invoke(args=["maintenance", "reconcile", "--fix"])

        assert result.exit_code == 0
        assert "stored=3 actual=1" in result.output
        assert "FIXED 1 category count(s) rewritten" in result.output
        assert "PASS Debtor balances match their ledgers" in result.output

    def test_seed_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "seed"])
        second = runner.invoke(args=["system", "seed"])

        assert first.exit_code == 0
        assert second.exit_code == 0
        assert "already exists" in second.output
        assert db_session.query(Category).count() == 2
        assert db_session.query(Product).count() == 3
        assert db_session.query(Category).filter_by(name="Ichimliklar").one().product_count == 2
