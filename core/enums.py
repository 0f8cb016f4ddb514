"""SQLAlchemy enum definitions for the database schema."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class IntervalMode(str, enum.Enum):
    random = "random"
    fixed = "fixed"


class NotificationFrequency(int, enum.Enum):
    """Solo-user cadence: notify at most once every N days (7 = weekly)."""

    daily = 1
    every_2_days = 2
    every_3_days = 3
    weekly = 7


# =====================================================
# SQLAlchemy Enum Types
# These reference existing PostgreSQL types (create_type=False)
# =====================================================

interval_mode_enum = SQLEnum(
    IntervalMode, name="interval_mode", create_type=False, native_enum=True
)
