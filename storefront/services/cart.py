"""Per-user cart backed by the carts/cart_items tables.

Carts are created lazily on first access. Views only show lines whose
product is still active; the hidden lines stay in the table until
``cleanup`` or checkout removes them.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.errors import InsufficientStock, NotFound, ValidationFailed
from storefront.db.models import Cart, CartItem, Product

logger = logging.getLogger(__name__)

MAX_LINE_QUANTITY = 999


@dataclass
class CartCheck:
    is_valid: bool
    cart: Cart
    lines: List[CartItem]
    errors: List[str] = field(default_factory=list)


def get_or_create_cart(db: Session, user_id: int) -> Cart:
    cart = db.execute(select(Cart).where(Cart.user_id == user_id)).scalar_one_or_none()
    if cart:
        return cart
    cart = Cart(user_id=user_id)
    db.add(cart)
    try:
        db.commit()
    except IntegrityError:
        # another request created it first
        db.rollback()
        return db.execute(select(Cart).where(Cart.user_id == user_id)).scalar_one()
    db.refresh(cart)
    return cart


def active_lines(cart: Cart) -> List[CartItem]:
    return [it for it in cart.items if it.product.is_active]


def view(cart: Cart) -> dict:
    lines = active_lines(cart)
    return {
        "id": cart.id,
        "items": lines,
        "total_items": sum(it.quantity for it in lines),
        "total_cents": sum(it.quantity * it.product.price_cents for it in lines),
    }


def get_cart(db: Session, user_id: int) -> dict:
    return view(get_or_create_cart(db, user_id))


def _line(cart: Cart, product_id: int) -> Optional[CartItem]:
    return next((it for it in active_lines(cart) if it.product_id == product_id), None)


def add_item(db: Session, user_id: int, product_id: int, quantity: int) -> dict:
    if quantity < 1 or quantity > MAX_LINE_QUANTITY:
        raise ValidationFailed(f'Quantity must be between 1 and {MAX_LINE_QUANTITY}')
    cart = get_or_create_cart(db, user_id)
    product = db.get(Product, product_id)
    if not product or not product.is_active:
        raise NotFound('Product not found or not available')

    existing = next((it for it in cart.items if it.product_id == product_id), None)
    in_cart = existing.quantity if existing else 0
    if in_cart + quantity > product.stock:
        raise InsufficientStock(
            f'Insufficient stock. Available: {product.stock}, In cart: {in_cart}, Requested: {quantity}'
        )
    if existing:
        existing.quantity = in_cart + quantity
        db.add(existing)
    else:
        db.add(CartItem(cart_id=cart.id, product_id=product_id, quantity=quantity))
    db.commit()
    db.refresh(cart)
    return view(cart)


def remove_item(db: Session, user_id: int, product_id: int, quantity: Optional[int] = None) -> dict:
    cart = get_or_create_cart(db, user_id)
    existing = _line(cart, product_id)
    if not existing:
        raise NotFound('Item not found in cart')
    to_remove = quantity or existing.quantity
    if to_remove >= existing.quantity:
        db.delete(existing)
    else:
        existing.quantity -= to_remove
        db.add(existing)
    db.commit()
    db.refresh(cart)
    return view(cart)


def update_item_quantity(db: Session, user_id: int, product_id: int, quantity: int) -> dict:
    if quantity < 0:
        raise ValidationFailed('Quantity cannot be negative')
    if quantity == 0:
        return remove_item(db, user_id, product_id)
    if quantity > MAX_LINE_QUANTITY:
        raise ValidationFailed(f'Quantity cannot exceed {MAX_LINE_QUANTITY}')
    cart = get_or_create_cart(db, user_id)
    existing = _line(cart, product_id)
    if not existing:
        raise NotFound('Item not found in cart')
    if quantity > existing.product.stock:
        raise InsufficientStock(f'Insufficient stock. Available: {existing.product.stock}, Requested: {quantity}')
    existing.quantity = quantity
    db.add(existing); db.commit(); db.refresh(cart)
    return view(cart)


def clear_cart(db: Session, user_id: int) -> None:
    cart = db.execute(select(Cart).where(Cart.user_id == user_id)).scalar_one_or_none()
    if cart:
        db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
        db.commit()
        db.expire(cart)


def item_count(db: Session, user_id: int) -> int:
    cart = db.execute(select(Cart).where(Cart.user_id == user_id)).scalar_one_or_none()
    if not cart:
        return 0
    return sum(it.quantity for it in active_lines(cart))


def summary(db: Session, user_id: int) -> dict:
    v = get_cart(db, user_id)
    return {"item_count": v["total_items"], "total_cents": v["total_cents"], "is_empty": not v["items"]}


def contains(db: Session, user_id: int, product_id: int) -> bool:
    stmt = (select(CartItem.id)
            .join(Cart, Cart.id == CartItem.cart_id)
            .where(Cart.user_id == user_id, CartItem.product_id == product_id))
    return db.execute(stmt).first() is not None


def validate_for_checkout(db: Session, user_id: int) -> CartCheck:
    """Check every cart line against the live product row.

    Unlike ``view`` this looks at all lines, so a product deactivated after
    it was carted is reported instead of silently skipped.
    """
    cart = get_or_create_cart(db, user_id)
    db.refresh(cart)
    lines = list(cart.items)
    if not lines:
        return CartCheck(is_valid=False, cart=cart, lines=lines, errors=['Cart is empty'])

    errors = []
    for it in lines:
        db.refresh(it.product)
        if not it.product.is_active:
            errors.append(f'Product "{it.product.name}" is no longer available')
            continue
        if it.quantity > it.product.stock:
            errors.append(
                f'Insufficient stock for "{it.product.name}". Available: {it.product.stock}, In cart: {it.quantity}'
            )
    return CartCheck(is_valid=not errors, cart=cart, lines=lines, errors=errors)


def cleanup(db: Session, user_id: int) -> dict:
    """Drop unavailable lines and clamp quantities to what is in stock."""
    cart = get_or_create_cart(db, user_id)
    removed = 0
    for it in list(cart.items):
        if not it.product.is_active or it.product.stock <= 0:
            db.delete(it)
            removed += 1
        elif it.quantity > it.product.stock:
            it.quantity = it.product.stock
            db.add(it)
    db.commit()
    db.refresh(cart)
    if removed:
        logger.info("cart %s cleanup removed %s line(s)", cart.id, removed)
    return view(cart)
