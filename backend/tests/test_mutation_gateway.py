# Overview: Pytest coverage for the resource write gate and the auto-reorder trigger.

"""
Mutation Gateway Tests

- every (operation, restriction) pair raises its own code
- a denied write leaves data untouched but persists violation + DENIED audit
- allowed writes are audited with the changed-field diff
- downward threshold crossings create one reorder; trigger failures never
  undo the stock update
"""

from decimal import Decimal

import pytest

from minestock.errors import RestrictionViolation
from minestock.models import AuditRecord, Reorder, Resource, UsageEvent, ViolationRecord
from minestock.services import inventory_service, reorder_service
from minestock.services.audit_service import AUDIT_DENIED, AUDIT_ERROR, AUDIT_SUCCESS


RESTRICTED_DAYS = [("weekday_ctx", "WEEKDAY"), ("holiday_ctx", "HOLIDAY")]


class TestCalendarGate:
    @pytest.mark.parametrize("ctx_name, kind", RESTRICTED_DAYS)
    def test_insert_denied(self, request, db_session, ctx_name, kind):
        ctx = request.getfixturevalue(ctx_name)

        with pytest.raises(RestrictionViolation) as exc:
            inventory_service.create_resource(ctx, {"name": "Drill Bits", "threshold": 10, "stock_level": 50})

        assert exc.value.code == f"INSERT_{kind}_RESTRICTED"
        assert exc.value.http_status == 403
        assert db_session.query(Resource).count() == 0

    @pytest.mark.parametrize("ctx_name, kind", RESTRICTED_DAYS)
    def test_update_denied(self, request, db_session, make_resource, ctx_name, kind):
        resource = make_resource(stock=50, threshold=10)
        ctx = request.getfixturevalue(ctx_name)

        with pytest.raises(RestrictionViolation) as exc:
            inventory_service.update_resource(ctx, resource.id, {"threshold": 30, "category": "Explosives"})

        assert exc.value.code == f"UPDATE_{kind}_RESTRICTED"
        refreshed = db_session.get(Resource, resource.id)
        assert refreshed.threshold == Decimal("10")
        assert refreshed.category is None

    @pytest.mark.parametrize("ctx_name, kind", RESTRICTED_DAYS)
    def test_delete_denied(self, request, db_session, make_resource, ctx_name, kind):
        resource = make_resource()
        ctx = request.getfixturevalue(ctx_name)

        with pytest.raises(RestrictionViolation) as exc:
            inventory_service.delete_resource(ctx, resource.id)

        assert exc.value.code == f"DELETE_{kind}_RESTRICTED"
        assert db_session.get(Resource, resource.id) is not None

    @pytest.mark.parametrize("ctx_name, kind", RESTRICTED_DAYS)
    def test_denial_is_recorded(self, request, db_session, make_resource, ctx_name, kind):
        resource = make_resource()
        ctx = request.getfixturevalue(ctx_name)

        with pytest.raises(RestrictionViolation):
            inventory_service.update_resource(ctx, resource.id, {"threshold": 30})

        violation = db_session.query(ViolationRecord).one()
        assert violation.attempted_operation == "UPDATE"
        assert violation.attempted_entity == "RESOURCES"
        assert violation.restriction_type == kind
        assert violation.actor == "tester"

        audit = db_session.query(AuditRecord).one()
        assert audit.status == AUDIT_DENIED
        assert audit.operation == "UPDATE"
        assert audit.record_id == str(resource.id)
        assert audit.message == f"Operation restricted: {kind}"

    def test_restricted_usage_changes_nothing(self, db_session, make_resource, weekday_ctx):
        resource = make_resource(stock=100, threshold=10)

        with pytest.raises(RestrictionViolation):
            inventory_service.record_usage(weekday_ctx, resource.id, 5)

        assert db_session.get(Resource, resource.id).stock_level == Decimal("100")
        assert db_session.query(UsageEvent).count() == 0
        assert db_session.query(AuditRecord).filter_by(status=AUDIT_SUCCESS).count() == 0


class TestAllowedWrites:
    def test_insert_audited_with_full_state(self, db_session, weekend_ctx, supplier):
        resource = inventory_service.create_resource(
            weekend_ctx,
            {"name": "ANFO Bags", "threshold": "40", "stock_level": "120", "supplier_id": supplier.id},
        )

        audit = db_session.query(AuditRecord).one()
        assert audit.status == AUDIT_SUCCESS
        assert audit.operation == "INSERT"
        assert audit.record_id == str(resource.id)
        assert audit.old_values is None
        assert audit.new_values["name"] == "ANFO Bags"
        assert audit.new_values["stock_level"] == 120.0
        assert db_session.query(ViolationRecord).count() == 0

    def test_update_audits_only_changed_fields(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(stock=100, threshold=10, category="PPE")
        inventory_service.update_resource(weekend_ctx, resource.id, {"threshold": 15, "category": "PPE"})

        audit = db_session.query(AuditRecord).one()
        assert audit.old_values == {"threshold": 10.0}
        assert audit.new_values == {"threshold": 15.0}

    def test_delete_audits_prior_state(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(name="Obsolete Fuses")
        resource_id = resource.id
        inventory_service.delete_resource(weekend_ctx, resource_id)

        assert db_session.get(Resource, resource_id) is None
        audit = db_session.query(AuditRecord).one()
        assert audit.operation == "DELETE"
        assert audit.old_values["name"] == "Obsolete Fuses"
        assert audit.new_values is None


class TestAutoReorder:
    def test_usage_crossing_threshold_creates_reorder(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(stock=25, threshold=20)

        inventory_service.record_usage(weekend_ctx, resource.id, 10)

        reorder = db_session.query(Reorder).filter_by(resource_id=resource.id).one()
        assert reorder.status == reorder_service.STATUS_PENDING
        assert reorder.approved_by is None
        assert reorder.quantity >= 40

        entries = {(a.entity, a.operation) for a in db_session.query(AuditRecord).all()}
        assert entries == {
            ("USAGE_EVENTS", "INSERT"),
            ("RESOURCES", "AUTO_REORDER"),
            ("REORDERS", "INSERT"),
        }

    def test_triggered_reorder_records_real_approver(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(stock=25, threshold=20)
        inventory_service.record_usage(weekend_ctx, resource.id, 10)

        reorder = db_session.query(Reorder).filter_by(resource_id=resource.id).one()
        auto = db_session.query(AuditRecord).filter_by(operation="AUTO_REORDER").one()
        assert "SYSTEM_AUTO" in auto.message

        approved = reorder_service.transition_status(weekend_ctx, reorder.id, "APPROVED", updated_by="alice")
        assert approved.approved_by == "alice"
        assert approved.approval_date is not None

    def test_raising_threshold_above_stock_creates_reorder(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(stock=50, threshold=20)
        inventory_service.update_resource(weekend_ctx, resource.id, {"threshold": 60})

        reorder = db_session.query(Reorder).filter_by(resource_id=resource.id).one()
        assert reorder.quantity == 120

    def test_already_below_does_not_trigger(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(stock=10, threshold=20)
        inventory_service.record_usage(weekend_ctx, resource.id, 2)
        assert db_session.query(Reorder).count() == 0

    def test_existing_active_reorder_is_left_alone(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(stock=25, threshold=20)
        db_session.add(Reorder(resource_id=resource.id, order_date=weekend_ctx.now(), quantity=40, status="APPROVED"))
        db_session.commit()

        inventory_service.record_usage(weekend_ctx, resource.id, 10)

        assert db_session.query(Reorder).filter_by(resource_id=resource.id).count() == 1
        assert db_session.query(AuditRecord).filter_by(status=AUDIT_ERROR).count() == 0

    def test_trigger_failure_keeps_stock_update(self, db_session, make_resource, weekend_ctx, monkeypatch):
        resource = make_resource(stock=25, threshold=20)

        def broken(uow, resource, *, approved_by=None):
            raise RuntimeError("supplier catalogue offline")

        monkeypatch.setattr(reorder_service, "create_auto_reorder_in", broken)

        event = inventory_service.record_usage(weekend_ctx, resource.id, 10)

        assert db_session.get(Resource, resource.id).stock_level == Decimal("15")
        assert db_session.get(UsageEvent, event.id) is not None
        assert db_session.query(Reorder).count() == 0

        error = db_session.query(AuditRecord).filter_by(status=AUDIT_ERROR).one()
        assert error.operation == "AUTO_REORDER_ERROR"
        assert error.record_id == str(resource.id)
        assert "supplier catalogue offline" in error.message
        assert db_session.query(AuditRecord).filter_by(entity="USAGE_EVENTS").count() == 1
