# Overview: Pytest coverage for consumption analytics.

from decimal import Decimal

from minestock.services import analytics_service
from minestock.services.analytics_service import (
    TREND_DECREASING,
    TREND_INCREASING,
    TREND_INSUFFICIENT_DATA,
    TREND_STABLE,
)

from conftest import SATURDAY, days_before


NOW = SATURDAY


class TestAverageDailyUsage:
    def test_mean_per_event_inside_window(self, db_session, make_resource, add_usage):
        resource = make_resource(stock=1000, threshold=100)
        add_usage(resource, 100, days_before(NOW, 1))
        add_usage(resource, 200, days_before(NOW, 2))
        add_usage(resource, 100, days_before(NOW, 20))
        add_usage(resource, 100, days_before(NOW, 25))
        add_usage(resource, 5000, days_before(NOW, 45))  # outside the window

        assert analytics_service.average_daily_usage(resource.id, now=NOW) == Decimal("125")

    def test_no_events_is_zero(self, db_session, make_resource):
        resource = make_resource()
        assert analytics_service.average_daily_usage(resource.id, now=NOW) == 0

    def test_custom_window(self, db_session, make_resource, add_usage):
        resource = make_resource()
        add_usage(resource, 10, days_before(NOW, 3))
        add_usage(resource, 30, days_before(NOW, 10))
        assert analytics_service.average_daily_usage(resource.id, 7, now=NOW) == Decimal("10")


class TestStockoutDays:
    def test_floor_of_stock_over_average(self, db_session, make_resource, add_usage):
        resource = make_resource(stock=1000, threshold=100)
        add_usage(resource, 100, days_before(NOW, 1))
        add_usage(resource, 200, days_before(NOW, 2))
        add_usage(resource, 100, days_before(NOW, 20))
        add_usage(resource, 100, days_before(NOW, 25))

        assert analytics_service.stockout_days(resource.id, now=NOW) == 8

    def test_no_usage_means_no_forecast(self, db_session, make_resource):
        resource = make_resource()
        assert analytics_service.stockout_days(resource.id, now=NOW) is None

    def test_unknown_resource_means_no_forecast(self, db_session):
        assert analytics_service.stockout_days(99999, now=NOW) is None


class TestConsumptionTrend:
    def test_increasing_at_fifty_percent(self, db_session, make_resource, add_usage):
        resource = make_resource()
        add_usage(resource, 100, days_before(NOW, 1))
        add_usage(resource, 200, days_before(NOW, 5))
        add_usage(resource, 100, days_before(NOW, 20))
        add_usage(resource, 100, days_before(NOW, 28))

        trend = analytics_service.consumption_trend(resource.id, now=NOW)
        assert trend.classification == TREND_INCREASING
        assert trend.percent_change == 50.0
        assert trend.recent_average == Decimal("150")
        assert trend.prior_average == Decimal("100")

    def test_stable_at_minus_five_percent(self, db_session, make_resource, add_usage):
        resource = make_resource()
        add_usage(resource, 95, days_before(NOW, 3))
        add_usage(resource, 100, days_before(NOW, 22))

        trend = analytics_service.consumption_trend(resource.id, now=NOW)
        assert trend.classification == TREND_STABLE
        assert trend.percent_change == -5.0

    def test_decreasing(self, db_session, make_resource, add_usage):
        resource = make_resource()
        add_usage(resource, 50, days_before(NOW, 3))
        add_usage(resource, 100, days_before(NOW, 22))

        trend = analytics_service.consumption_trend(resource.id, now=NOW)
        assert trend.classification == TREND_DECREASING
        assert trend.percent_change == -50.0

    def test_prior_half_empty_is_insufficient_data(self, db_session, make_resource, add_usage):
        resource = make_resource()
        add_usage(resource, 80, days_before(NOW, 2))

        trend = analytics_service.consumption_trend(resource.id, now=NOW)
        assert trend.classification == TREND_INSUFFICIENT_DATA
        assert trend.percent_change is None
        assert trend.to_dict()["recent_average"] == 80.0

    def test_classify_change_boundaries(self, db_session):
        assert analytics_service.classify_change(Decimal("110"), Decimal("100")).classification == TREND_STABLE
        assert analytics_service.classify_change(Decimal("90"), Decimal("100")).classification == TREND_STABLE
        assert analytics_service.classify_change(Decimal("111"), Decimal("100")).classification == TREND_INCREASING
        assert analytics_service.classify_change(Decimal("0"), Decimal("0")).classification == TREND_INSUFFICIENT_DATA
