from datetime import date, datetime

import pytest

from storefront.core.errors import ValidationFailed
from storefront.db.models import Order, OrderStatus
from storefront.services import orders as order_service
from storefront.services import reports

NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture
def make_order(db, customer):
    def _make(total_cents, created_at, status=OrderStatus.PENDING, user=None):
        order = Order(user_id=(user or customer).id, status=status, total_cents=total_cents,
                      created_at=created_at, updated_at=created_at)
        db.add(order); db.commit(); db.refresh(order)
        return order
    return _make


def test_statistics_count_by_status_and_skip_cancelled_revenue(db, make_order):
    make_order(1000, NOW)
    make_order(2000, NOW, OrderStatus.SHIPPED)
    make_order(3000, NOW, OrderStatus.DELIVERED)
    make_order(9999, NOW, OrderStatus.CANCELLED)

    assert reports.order_statistics(db) == {
        "total_orders": 4,
        "pending_orders": 1,
        "shipped_orders": 1,
        "delivered_orders": 1,
        "cancelled_orders": 1,
        "total_revenue_cents": 6000,
    }


def test_statistics_on_empty_store(db):
    stats = reports.order_statistics(db)
    assert stats["total_orders"] == 0
    assert stats["total_revenue_cents"] == 0


def test_recent_orders_newest_first(db, make_order):
    old = make_order(100, datetime(2026, 3, 1))
    mid = make_order(200, datetime(2026, 3, 5))
    new = make_order(300, datetime(2026, 3, 10))

    assert [o.id for o in reports.recent_orders(db, 2)] == [new.id, mid.id]
    assert [o.id for o in reports.recent_orders(db)] == [new.id, mid.id, old.id]


@pytest.mark.parametrize("period,expected", [
    ("day", "2026-03-15"),
    ("week", "2026-W11"),
    ("month", "2026-03"),
    ("year", "2026"),
])
def test_period_key(period, expected):
    assert reports.period_key(NOW, period) == expected


def test_period_key_uses_iso_week_year():
    assert reports.period_key(datetime(2027, 1, 1), "week") == "2026-W53"


def test_revenue_by_day(db, make_order):
    make_order(1000, datetime(2026, 3, 14, 9))
    make_order(500, datetime(2026, 3, 14, 18))
    make_order(700, datetime(2026, 3, 15, 8))
    make_order(9000, datetime(2026, 3, 15, 9), OrderStatus.CANCELLED)
    make_order(4000, datetime(2026, 1, 1))  # outside the window

    assert reports.revenue_by_period(db, "day", days=30, now=NOW) == [
        {"date": "2026-03-14", "revenue_cents": 1500, "order_count": 2},
        {"date": "2026-03-15", "revenue_cents": 700, "order_count": 1},
    ]


def test_revenue_by_month(db, make_order):
    make_order(1000, datetime(2026, 1, 20))
    make_order(2000, datetime(2026, 2, 3))
    make_order(3000, datetime(2026, 2, 28))

    assert reports.revenue_by_period(db, "month", days=90, now=NOW) == [
        {"date": "2026-01", "revenue_cents": 1000, "order_count": 1},
        {"date": "2026-02", "revenue_cents": 5000, "order_count": 2},
    ]


def test_date_range_includes_whole_end_day(db, make_order, make_user):
    before = make_order(1, datetime(2026, 3, 9, 23, 59))
    first = make_order(2, datetime(2026, 3, 10, 0, 0))
    last = make_order(3, datetime(2026, 3, 12, 23, 30))
    someone_else = make_order(4, datetime(2026, 3, 11), user=make_user())

    everyone = order_service.orders_by_date_range(db, date(2026, 3, 10), date(2026, 3, 12))
    assert [o.id for o in everyone] == [last.id, someone_else.id, first.id]
    assert before.id not in [o.id for o in everyone]

    mine = order_service.orders_by_date_range(db, date(2026, 3, 10), date(2026, 3, 12), user_id=first.user_id)
    assert [o.id for o in mine] == [last.id, first.id]


def test_date_range_rejects_reversed_bounds(db):
    with pytest.raises(ValidationFailed):
        order_service.orders_by_date_range(db, date(2026, 3, 12), date(2026, 3, 10))
