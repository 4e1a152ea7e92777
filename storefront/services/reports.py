from datetime import datetime, timedelta
from typing import List, Literal

from sqlalchemy import select, func
from sqlalchemy.orm import Session, selectinload

from storefront.db.models import Order, OrderStatus, utcnow

Period = Literal["day", "week", "month", "year"]


def order_statistics(db: Session) -> dict:
    counts = dict(db.execute(select(Order.status, func.count(Order.id)).group_by(Order.status)).all())
    revenue = db.execute(
        select(func.coalesce(func.sum(Order.total_cents), 0)).where(Order.status != OrderStatus.CANCELLED)
    ).scalar_one()
    return {
        "total_orders": sum(counts.values()),
        "pending_orders": counts.get(OrderStatus.PENDING, 0),
        "shipped_orders": counts.get(OrderStatus.SHIPPED, 0),
        "delivered_orders": counts.get(OrderStatus.DELIVERED, 0),
        "cancelled_orders": counts.get(OrderStatus.CANCELLED, 0),
        "total_revenue_cents": int(revenue or 0),
    }


def recent_orders(db: Session, limit: int = 10):
    stmt = (select(Order).options(selectinload(Order.items))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit))
    return db.execute(stmt).scalars().all()


def period_key(ts: datetime, period: Period) -> str:
    if period == "day":
        return ts.strftime("%Y-%m-%d")
    if period == "week":
        year, week, _ = ts.isocalendar()
        return f"{year}-W{week:02d}"
    if period == "month":
        return ts.strftime("%Y-%m")
    if period == "year":
        return ts.strftime("%Y")
    raise ValueError(f"unknown period {period!r}")


def revenue_by_period(db: Session, period: Period = "day", days: int = 30, now: datetime | None = None) -> List[dict]:
    """Revenue of non-cancelled orders from the last ``days`` days, bucketed by ``period``."""
    end = now or utcnow()
    start = end - timedelta(days=days)
    rows = db.execute(
        select(Order.created_at, Order.total_cents)
        .where(Order.created_at >= start, Order.created_at <= end, Order.status != OrderStatus.CANCELLED)
    ).all()

    buckets: dict = {}
    for created_at, total_cents in rows:
        key = period_key(created_at, period)
        b = buckets.setdefault(key, {"revenue_cents": 0, "order_count": 0})
        b["revenue_cents"] += total_cents
        b["order_count"] += 1
    return [{"date": k, **v} for k, v in sorted(buckets.items())]
