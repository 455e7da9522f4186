# Overview: Pytest coverage for the reorder engine and delivery processing.

"""
Reorder Engine Tests

- optimal quantity floor (2 x threshold) holds with and without history
- duplicate active reorders are refused
- lifecycle transitions: terminal states, approval stamping, delivery adds stock once
- bulk delivery isolates per-item failures
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from minestock.errors import InvalidStateError, NotFoundError, RestrictionViolation, ValidationError
from minestock.models import AuditRecord, Reorder, Resource, ViolationRecord
from minestock.services import reorder_service
from minestock.services.reorder_service import (
    STATUS_APPROVED,
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_ORDERED,
    STATUS_PENDING,
)

from conftest import SATURDAY, days_before


def _stock(db_session, resource_id):
    return db_session.get(Resource, resource_id).stock_level


class TestOptimalQuantity:
    def test_floor_without_history(self, db_session, make_resource):
        resource = make_resource(stock=5, threshold=20)
        assert reorder_service.optimal_quantity(resource.id, now=SATURDAY) == 40

    def test_demand_driven_when_above_floor(self, db_session, make_resource, add_usage):
        resource = make_resource(stock=5, threshold=20)
        add_usage(resource, 10, days_before(SATURDAY, 2))
        add_usage(resource, 10, days_before(SATURDAY, 9))
        # 10 x 30 + 10 x 7
        assert reorder_service.optimal_quantity(resource.id, now=SATURDAY) == 370

    def test_fractional_threshold_floor_rounds_up(self, db_session, make_resource, add_usage):
        resource = make_resource(stock=5, threshold="12.25")
        add_usage(resource, "0.65", days_before(SATURDAY, 1))  # 0.65 x 37 = 24.05
        quantity = reorder_service.optimal_quantity(resource.id, now=SATURDAY)
        assert quantity == 25
        assert quantity >= 2 * Decimal("12.25")

    def test_unknown_resource(self, db_session):
        with pytest.raises(NotFoundError):
            reorder_service.optimal_quantity(424242)


class TestCreateAutoReorder:
    def test_creates_pending_reorder(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(stock=10, threshold=20)

        reorder = reorder_service.create_auto_reorder(weekend_ctx, resource.id, approved_by="SYSTEM_AUTO")

        assert reorder.status == STATUS_PENDING
        assert reorder.quantity == 40
        assert reorder.order_date == SATURDAY
        assert reorder.expected_delivery == SATURDAY + timedelta(days=7)
        assert reorder.approved_by == "SYSTEM_AUTO"
        assert reorder.approval_date is None

        audit = db_session.query(AuditRecord).filter_by(entity="REORDERS").one()
        assert audit.operation == "INSERT"
        assert audit.message == f"New reorder for resource ID {resource.id}, quantity: 40"

    def test_second_call_refused(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(stock=10, threshold=20)
        reorder_service.create_auto_reorder(weekend_ctx, resource.id)

        with pytest.raises(InvalidStateError) as exc:
            reorder_service.create_auto_reorder(weekend_ctx, resource.id)
        assert exc.value.code == "ACTIVE_REORDER_EXISTS"
        assert db_session.query(Reorder).filter_by(resource_id=resource.id).count() == 1

    def test_stock_not_below_threshold(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(stock=20, threshold=20)
        with pytest.raises(InvalidStateError) as exc:
            reorder_service.create_auto_reorder(weekend_ctx, resource.id)
        assert exc.value.code == "STOCK_ABOVE_THRESHOLD"
        assert db_session.query(Reorder).count() == 0

    def test_unknown_resource(self, db_session, weekend_ctx):
        with pytest.raises(NotFoundError):
            reorder_service.create_auto_reorder(weekend_ctx, 99999)

    def test_reorder_creation_is_not_gated(self, db_session, make_resource, weekday_ctx):
        resource = make_resource(stock=10, threshold=20)
        reorder = reorder_service.create_auto_reorder(weekday_ctx, resource.id)
        assert reorder.status == STATUS_PENDING
        assert db_session.query(ViolationRecord).count() == 0

    def test_new_reorder_allowed_after_previous_closed(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(stock=10, threshold=20)
        first = reorder_service.create_auto_reorder(weekend_ctx, resource.id)
        db_session.get(Reorder, first.id).status = STATUS_CANCELLED
        db_session.commit()

        second = reorder_service.create_auto_reorder(weekend_ctx, resource.id)
        assert second.id != first.id


class TestTransitionStatus:
    @pytest.fixture
    def reorder(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(stock=10, threshold=20)
        return reorder_service.create_auto_reorder(weekend_ctx, resource.id)

    def test_approval_stamps_once(self, db_session, reorder, weekend_ctx):
        approved = reorder_service.transition_status(weekend_ctx, reorder.id, "Approved", updated_by="alice")
        assert approved.status == STATUS_APPROVED
        assert approved.approved_by == "alice"
        assert approved.approval_date == SATURDAY

        later = weekend_ctx.pinned(SATURDAY + timedelta(days=1))
        again = reorder_service.transition_status(later, reorder.id, STATUS_APPROVED, updated_by="bob")
        assert again.approved_by == "alice"
        assert again.approval_date == SATURDAY

    def test_delivery_adds_stock_exactly_once(self, db_session, reorder, weekend_ctx):
        resource_id = reorder.resource_id
        reorder_service.transition_status(weekend_ctx, reorder.id, STATUS_ORDERED)

        delivered = reorder_service.transition_status(weekend_ctx, reorder.id, STATUS_DELIVERED)
        assert delivered.actual_delivery == SATURDAY
        assert _stock(db_session, resource_id) == Decimal("50")

        with pytest.raises(InvalidStateError) as exc:
            reorder_service.transition_status(weekend_ctx, reorder.id, STATUS_DELIVERED)
        assert exc.value.code == "REORDER_TERMINAL"
        assert _stock(db_session, resource_id) == Decimal("50")

    def test_delivery_on_weekday_is_restricted(self, db_session, reorder, weekend_ctx, weekday_ctx):
        reorder_service.transition_status(weekend_ctx, reorder.id, STATUS_ORDERED)

        with pytest.raises(RestrictionViolation) as exc:
            reorder_service.transition_status(weekday_ctx, reorder.id, STATUS_DELIVERED)
        assert exc.value.code == "UPDATE_WEEKDAY_RESTRICTED"

        assert db_session.get(Reorder, reorder.id).status == STATUS_ORDERED
        assert db_session.get(Reorder, reorder.id).actual_delivery is None
        assert _stock(db_session, reorder.resource_id) == Decimal("10")
        assert db_session.query(ViolationRecord).count() == 1

    def test_status_update_audited(self, db_session, reorder, weekend_ctx):
        reorder_service.transition_status(weekend_ctx, reorder.id, STATUS_ORDERED)
        audit = db_session.query(AuditRecord).filter_by(entity="REORDERS", operation="UPDATE").one()
        assert audit.message == f"Reorder ID {reorder.id} status changed from PENDING to ORDERED"
        assert audit.old_values["status"] == STATUS_PENDING
        assert audit.new_values["status"] == STATUS_ORDERED

    def test_cannot_move_backwards(self, db_session, reorder, weekend_ctx):
        reorder_service.transition_status(weekend_ctx, reorder.id, STATUS_ORDERED)
        with pytest.raises(InvalidStateError) as exc:
            reorder_service.transition_status(weekend_ctx, reorder.id, STATUS_APPROVED)
        assert exc.value.code == "INVALID_TRANSITION"

    def test_cancelled_is_terminal(self, db_session, reorder, weekend_ctx):
        reorder_service.transition_status(weekend_ctx, reorder.id, STATUS_CANCELLED)
        with pytest.raises(InvalidStateError):
            reorder_service.transition_status(weekend_ctx, reorder.id, STATUS_APPROVED)

    def test_unknown_status(self, db_session, reorder, weekend_ctx):
        with pytest.raises(ValidationError):
            reorder_service.transition_status(weekend_ctx, reorder.id, "SHIPPED")

    def test_unknown_reorder(self, db_session, weekend_ctx):
        with pytest.raises(NotFoundError):
            reorder_service.transition_status(weekend_ctx, 31337, STATUS_APPROVED)


class TestBulkDelivery:
    def test_unknown_resource_counted_not_raised(self, db_session, make_resource, weekend_ctx):
        first = make_resource(stock=10, threshold=5)
        third = make_resource(stock=0, threshold=5)

        result = reorder_service.process_bulk_delivery(
            weekend_ctx, [(first.id, 15), (987654, 20), (third.id, "7.5")]
        )

        assert (result.succeeded, result.failed) == (2, 1)
        assert result.errors[0]["position"] == 2
        assert _stock(db_session, first.id) == Decimal("25")
        assert _stock(db_session, third.id) == Decimal("7.5")

        error_audit = db_session.query(AuditRecord).filter_by(status="ERROR").one()
        assert error_audit.record_id == "987654"
        assert db_session.query(AuditRecord).filter_by(status="SUCCESS", entity="RESOURCES").count() == 2

    def test_bad_quantity_is_a_failed_item(self, db_session, make_resource, weekend_ctx):
        resource = make_resource(stock=10, threshold=5)
        result = reorder_service.process_bulk_delivery(
            weekend_ctx, [(resource.id, -3), (resource.id, "0.005"), (resource.id, 4)]
        )
        assert (result.succeeded, result.failed) == (1, 2)
        assert "decimal places" in result.errors[1]["error"]
        assert _stock(db_session, resource.id) == Decimal("14")

    def test_restricted_day_rejects_whole_batch(self, db_session, make_resource, weekday_ctx):
        resource = make_resource(stock=10, threshold=5)
        with pytest.raises(RestrictionViolation):
            reorder_service.process_bulk_delivery(weekday_ctx, [(resource.id, 5)])
        assert _stock(db_session, resource.id) == Decimal("10")
        assert db_session.query(ViolationRecord).count() == 1

    def test_pair_delivery_lists(self):
        assert reorder_service.pair_delivery_lists([1, 2], [5, 6]) == [(1, 5), (2, 6)]
        with pytest.raises(ValidationError):
            reorder_service.pair_delivery_lists([1, 2, 3], [5, 6])


class TestReorderAllLowStock:
    def test_creates_for_each_low_resource(self, db_session, make_resource, weekend_ctx):
        low = make_resource(stock=2, threshold=20)
        covered = make_resource(stock=5, threshold=20)
        make_resource(stock=50, threshold=20)
        reorder_service.create_auto_reorder(weekend_ctx, covered.id)

        result = reorder_service.reorder_all_low_stock(weekend_ctx)

        assert [r["resource_id"] for r in result["created"]] == [low.id]
        assert result["created"][0]["approved_by"] == "SYSTEM_AUTO"
        assert [s["code"] for s in result["skipped"]] == ["ACTIVE_REORDER_EXISTS"]

    def test_list_reorders_by_status(self, db_session, make_resource, weekend_ctx):
        a = make_resource(stock=2, threshold=20)
        b = make_resource(stock=2, threshold=20)
        ra = reorder_service.create_auto_reorder(weekend_ctx, a.id)
        reorder_service.create_auto_reorder(weekend_ctx, b.id)
        reorder_service.transition_status(weekend_ctx, ra.id, STATUS_CANCELLED)

        assert len(reorder_service.list_reorders()) == 2
        assert [r.resource_id for r in reorder_service.list_reorders(statuses=["pending"])] == [b.id]
        assert len(reorder_service.list_reorders(resource_id=a.id)) == 1
