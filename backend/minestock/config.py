# backend/minestock/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/minestock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///minestock.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Reorder policy
    REORDER_LEAD_TIME_DAYS = int(os.environ.get("REORDER_LEAD_TIME_DAYS", "7"))
    REORDER_COVERAGE_DAYS = int(os.environ.get("REORDER_COVERAGE_DAYS", "30"))
    REORDER_EXPECTED_DELIVERY_DAYS = int(os.environ.get("REORDER_EXPECTED_DELIVERY_DAYS", "7"))

    # Consumption analytics
    USAGE_WINDOW_DAYS = int(os.environ.get("USAGE_WINDOW_DAYS", "30"))
    TREND_CHANGE_THRESHOLD_PCT = int(os.environ.get("TREND_CHANGE_THRESHOLD_PCT", "10"))

    # Actor recorded for automatic (trigger-driven) actions
    SYSTEM_ACTOR = os.environ.get("SYSTEM_ACTOR", "SYSTEM_AUTO")

    # Reporting
    LOW_STOCK_REPORT_PCT = 80
    HIGH_CONSUMPTION_THRESHOLD = 1000
