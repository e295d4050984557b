"""Driver directory fields, strictly positive prices

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("driver_profiles", sa.Column("city", sa.String(100), nullable=True))
    op.add_column("driver_profiles", sa.Column("vehicle_color", sa.String(30), nullable=True))
    op.add_column("driver_profiles", sa.Column("description", sa.Text(), nullable=True))
    op.create_index("ix_driver_profiles_city", "driver_profiles", ["city"])
    op.create_index("ix_driver_profiles_rating_avg", "driver_profiles", ["rating_avg"])

    op.drop_constraint("ck_driver_price_per_day_positive", "driver_profiles", type_="check")
    op.create_check_constraint("ck_driver_price_per_day_positive", "driver_profiles", "price_per_day > 0")
    op.drop_constraint("ck_booking_price_per_day_positive", "bookings", type_="check")
    op.create_check_constraint("ck_booking_price_per_day_positive", "bookings", "price_per_day > 0")
    op.drop_constraint("ck_booking_total_price_positive", "bookings", type_="check")
    op.create_check_constraint("ck_booking_total_price_positive", "bookings", "total_price > 0")


def downgrade() -> None:
    op.drop_constraint("ck_booking_total_price_positive", "bookings", type_="check")
    op.create_check_constraint("ck_booking_total_price_positive", "bookings", "total_price >= 0")
    op.drop_constraint("ck_booking_price_per_day_positive", "bookings", type_="check")
    op.create_check_constraint("ck_booking_price_per_day_positive", "bookings", "price_per_day >= 0")
    op.drop_constraint("ck_driver_price_per_day_positive", "driver_profiles", type_="check")
    op.create_check_constraint("ck_driver_price_per_day_positive", "driver_profiles", "price_per_day >= 0")

    op.drop_index("ix_driver_profiles_rating_avg", table_name="driver_profiles")
    op.drop_index("ix_driver_profiles_city", table_name="driver_profiles")
    op.drop_column("driver_profiles", "description")
    op.drop_column("driver_profiles", "vehicle_color")
    op.drop_column("driver_profiles", "city")
