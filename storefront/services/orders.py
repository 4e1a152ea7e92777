"""Order placement, status lifecycle and cancellation.

Checkout turns a cart into an order in one database transaction. Stock is
taken with a guarded ``UPDATE ... WHERE stock >= :qty`` per line, so two
checkouts racing for the last unit cannot both succeed no matter how the
earlier validation interleaved; the loser rolls back without leaving an
order, order items or a partial decrement behind.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, FrozenSet, Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.orm import Session, selectinload

from storefront.core.config import settings
from storefront.core.errors import (
    BusinessRuleViolation,
    CancellationLimitReached,
    CartValidationFailed,
    EmptyCart,
    InsufficientStock,
    InvalidStatusTransition,
    NotFound,
    PaymentFailed,
    ValidationFailed,
)
from storefront.db.models import CartItem, Order, OrderItem, OrderStatus, Product, User, utcnow
from storefront.services import cart as cart_service
from storefront.services import pagination
from storefront.services.payment import PaymentGateway, validate_amount

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def create_order(db: Session, user: User, gateway: PaymentGateway, payment_method: Optional[str] = None) -> Order:
    method = payment_method or "credit_card"

    check = cart_service.validate_for_checkout(db, user.id)
    if not check.lines:
        raise EmptyCart()
    if not check.is_valid:
        raise CartValidationFailed(check.errors)

    # (product_id, quantity, unit price, name) as validated. These prices are charged and
    # also written to the order items; re-reading them in the write transaction would let
    # the order total drift from the amount paid.
    lines = sorted(
        ((it.product_id, it.quantity, it.product.price_cents, it.product.name) for it in check.lines),
        key=lambda line: line[0],
    )
    cart_id = check.cart.id
    total = sum(qty * price for _, qty, price, _ in lines)
    if not validate_amount(total):
        raise BusinessRuleViolation(f"Order total {total} is outside the payable range")

    # end the read transaction; the gateway call can take a while
    db.commit()

    result = gateway.process_payment(total, method)
    if not result.success:
        logger.info("checkout for user %s rejected by payment: %s", user.id, result.reason)
        raise PaymentFailed(result.reason)

    try:
        for product_id, qty, _, name in lines:
            res = db.execute(
                update(Product)
                .where(Product.id == product_id, Product.is_active.is_(True), Product.stock >= qty)
                .values(stock=Product.stock - qty, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                current = db.execute(
                    select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
                ).scalar_one_or_none()
                if current is None or not current.is_active:
                    raise BusinessRuleViolation(f"Product {name} is no longer available")
                raise InsufficientStock(
                    f"Insufficient stock for {current.name}. Available: {current.stock}, Required: {qty}"
                )

        order = Order(
            user_id=user.id,
            status=OrderStatus.PENDING,
            total_cents=total,
            payment_method=method,
            transaction_id=result.transaction_id or "",
        )
        order.items = [
            OrderItem(product_id=product_id, quantity=qty, price_cents=price, name_snapshot=name)
            for product_id, qty, price, name in lines
        ]
        db.add(order)
        db.execute(
            delete(CartItem).where(CartItem.cart_id == cart_id).execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("checkout for user %s rolled back after payment %s", user.id, result.transaction_id)
        raise

    db.refresh(order)
    logger.info("order %s created for user %s (%s cents, %s lines)", order.id, user.id, total, len(lines))
    return order


def _with_items(stmt):
    return stmt.options(selectinload(Order.items))


def get_order(db: Session, order_id: int, user_id: Optional[int] = None) -> Order:
    stmt = _with_items(select(Order).where(Order.id == order_id))
    if user_id is not None:
        stmt = stmt.where(Order.user_id == user_id)
    order = db.execute(stmt).scalar_one_or_none()
    if not order:
        raise NotFound("Order not found")
    return order


def _page_of_orders(db: Session, page: int, limit: int, *conds) -> dict:
    page, limit = pagination.normalize(page, limit)
    total = db.execute(select(func.count(Order.id)).where(*conds)).scalar_one()
    stmt = (_with_items(select(Order).where(*conds))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(pagination.offset_for(page, limit))
            .limit(limit))
    return pagination.paginated(list(db.execute(stmt).scalars().all()), page, limit, total)


def list_user_orders(db: Session, user_id: int, page: int = 1, limit: int = 10) -> dict:
    return _page_of_orders(db, page, limit, Order.user_id == user_id)


def list_all_orders(db: Session, page: int = 1, limit: int = 10, status: Optional[OrderStatus] = None) -> dict:
    conds = [Order.status == status] if status else []
    return _page_of_orders(db, page, limit, *conds)


def orders_by_date_range(db: Session, start: date, end: date, user_id: Optional[int] = None):
    """Orders created on any day from ``start`` to ``end`` inclusive."""
    if start > end:
        raise ValidationFailed("Start date must be before end date")
    lo = datetime.combine(start, time.min)
    hi = datetime.combine(end + timedelta(days=1), time.min)
    stmt = _with_items(select(Order).where(Order.created_at >= lo, Order.created_at < hi))
    if user_id is not None:
        stmt = stmt.where(Order.user_id == user_id)
    stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc())
    return db.execute(stmt).scalars().all()


def update_status(db: Session, order_id: int, new_status: OrderStatus) -> Order:
    order = get_order(db, order_id)
    current = order.status
    if not can_transition(current, new_status):
        raise InvalidStatusTransition(f"Invalid status transition from {current.value} to {new_status.value}")
    # guarded on the status we checked, so a cancel committed meanwhile is not overwritten
    res = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == current)
        .values(status=new_status, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        raise InvalidStatusTransition(
            f"Invalid status transition from {current.value} to {new_status.value}: order status changed"
        )
    db.commit(); db.refresh(order)
    logger.info("order %s moved %s -> %s", order.id, current.value, new_status.value)
    return order


def cancel_order(db: Session, order_id: int, user: User) -> Order:
    """Cancel a PENDING order, put its stock back and count it against the requester."""
    order = get_order(db, order_id, None if user.is_admin else user.id)
    if order.status != OrderStatus.PENDING:
        raise BusinessRuleViolation("Can only cancel orders with PENDING status")

    limit = settings.MAX_CANCELLATION_COUNT
    count = db.execute(select(User.cancellation_count).where(User.id == user.id)).scalar_one_or_none()
    if count is None:
        raise NotFound("User not found")
    if count >= limit:
        raise CancellationLimitReached(f"Maximum cancellation limit ({limit}) reached. Please contact support.")

    items = [(it.product_id, it.quantity) for it in order.items]
    try:
        res = db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == OrderStatus.PENDING)
            .values(status=OrderStatus.CANCELLED, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise BusinessRuleViolation("Can only cancel orders with PENDING status")

        for product_id, qty in items:
            db.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(stock=Product.stock + qty, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )

        res = db.execute(
            update(User)
            .where(User.id == user.id, User.cancellation_count < limit)
            .values(cancellation_count=User.cancellation_count + 1)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise CancellationLimitReached(f"Maximum cancellation limit ({limit}) reached. Please contact support.")
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info("order %s cancelled by user %s; %s line(s) restocked", order.id, user.id, len(items))
    return order
