# Overview: Pytest coverage for the Flask CLI command groups.

import pytest

from minestock.models import AuditRecord, Holiday, Reorder, Resource, Supplier


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestSystemCommands:
    def test_seed_is_idempotent_and_unaudited(self, runner, db_session):
        result = runner.invoke(args=["system", "seed"])
        assert result.exit_code == 0, result.output
        assert "DONE Seed complete." in result.output

        counts = (
            db_session.query(Supplier).count(),
            db_session.query(Resource).count(),
            db_session.query(Holiday).count(),
        )
        assert counts == (3, 6, 3)
        assert db_session.query(AuditRecord).count() == 0

        again = runner.invoke(args=["system", "seed"])
        assert again.exit_code == 0
        assert "already exists" in again.output
        assert db_session.query(Resource).count() == 6


class TestCalendarCommands:
    def test_add_and_list_holidays(self, runner, db_session):
        result = runner.invoke(args=["holidays", "add", "2025-12-25", "Christmas Day", "--recurring", "YEARLY"])
        assert result.exit_code == 0, result.output

        listed = runner.invoke(args=["holidays", "list"])
        assert "2025-12-25  Christmas Day (YEARLY)" in listed.output
        assert db_session.query(Holiday).one().created_by == "CLI"

    def test_add_holiday_bad_date(self, runner, db_session):
        result = runner.invoke(args=["holidays", "add", "25-12-2025", "Christmas Day"])
        assert result.exit_code != 0

    def test_duplicate_holiday_reports_error(self, runner, db_session, christmas):
        result = runner.invoke(args=["holidays", "add", "2025-12-25", "Again"])
        assert result.exit_code == 1
        assert "already" in result.output.lower()

    def test_calendar_status(self, runner, db_session, christmas):
        weekend = runner.invoke(args=["calendar", "status", "--at", "2025-12-06T10:00:00"])
        assert "Resource writes: ALLOWED" in weekend.output

        holiday = runner.invoke(args=["calendar", "status", "--at", "2025-12-25T10:00:00"])
        assert "Holiday: Christmas Day" in holiday.output
        assert "RESTRICTED (HOLIDAY)" in holiday.output


class TestReorderAndReportCommands:
    def test_check_all(self, runner, db_session, make_resource):
        make_resource(stock=1, threshold=20)
        make_resource(stock=90, threshold=20)

        result = runner.invoke(args=["reorders", "check-all"])
        assert result.exit_code == 0, result.output
        assert "DONE 1 created, 0 skipped" in result.output
        assert db_session.query(Reorder).one().approved_by == "SYSTEM_AUTO"

    def test_low_stock_report(self, runner, db_session, make_resource):
        make_resource(stock=1, threshold=20, name="Roof Mesh", category="SUPPORT")
        result = runner.invoke(args=["reports", "low-stock"])
        assert result.exit_code == 0, result.output
        assert "1. Roof Mesh (SUPPORT)" in result.output
        assert "Total items needing attention: 1" in result.output

    def test_monthly_report_rejects_bad_month(self, runner, db_session):
        result = runner.invoke(args=["reports", "monthly", "--month", "13", "--year", "2025"])
        assert result.exit_code == 1

    def test_audit_report(self, runner, db_session):
        result = runner.invoke(args=["reports", "audit", "--days", "7"])
        assert result.exit_code == 0
        assert "Total operations: 0" in result.output
