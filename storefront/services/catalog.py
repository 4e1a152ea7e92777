"""Product catalog and stock administration."""
import logging
from typing import Iterable, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.errors import BusinessRuleViolation, NotFound, ValidationFailed
from storefront.db.models import Product
from storefront.services import pagination

logger = logging.getLogger(__name__)


def _filtered(stmt, search: Optional[str], min_price: Optional[int], max_price: Optional[int],
              in_stock: Optional[bool], include_inactive: bool):
    if not include_inactive:
        stmt = stmt.where(Product.is_active.is_(True))
    if search:
        q_like = f"%{search.lower()}%"
        stmt = stmt.where(or_(Product.name.ilike(q_like), Product.description.ilike(q_like)))
    if min_price is not None: stmt = stmt.where(Product.price_cents >= min_price)
    if max_price is not None: stmt = stmt.where(Product.price_cents <= max_price)
    if in_stock is True: stmt = stmt.where(Product.stock > 0)
    if in_stock is False: stmt = stmt.where(Product.stock <= 0)
    return stmt


def list_products(db: Session, page: int = 1, limit: int = 10, search: Optional[str] = None,
                  min_price: Optional[int] = None, max_price: Optional[int] = None,
                  in_stock: Optional[bool] = None, include_inactive: bool = False) -> dict:
    page, limit = pagination.normalize(page, limit)
    stmt = _filtered(select(Product), search, min_price, max_price, in_stock, include_inactive)
    count_stmt = _filtered(select(func.count(Product.id)), search, min_price, max_price, in_stock, include_inactive)
    total = db.execute(count_stmt).scalar_one()
    stmt = stmt.order_by(Product.created_at.desc(), Product.id.desc())
    stmt = stmt.offset(pagination.offset_for(page, limit)).limit(limit)
    rows = db.execute(stmt).scalars().all()
    return pagination.paginated(list(rows), page, limit, total)


def get_product(db: Session, product_id: int, include_inactive: bool = False) -> Product:
    obj = db.get(Product, product_id)
    if not obj or (not include_inactive and not obj.is_active):
        raise NotFound('Product not found')
    return obj


def create_product(db: Session, name: str, price_cents: int, stock: int, description: str = '') -> Product:
    if price_cents <= 0:
        raise ValidationFailed('Price must be greater than 0')
    if stock < 0:
        raise ValidationFailed('Stock cannot be negative')
    obj = Product(name=name, description=description or '', price_cents=price_cents, stock=stock, is_active=True)
    db.add(obj); db.commit(); db.refresh(obj)
    logger.info("product %s created (stock=%s)", obj.id, obj.stock)
    return obj


def update_product(db: Session, product_id: int, **fields) -> Product:
    obj = get_product(db, product_id, include_inactive=True)
    if fields.get('price_cents') is not None and fields['price_cents'] <= 0:
        raise ValidationFailed('Price must be greater than 0')
    if fields.get('stock') is not None and fields['stock'] < 0:
        raise ValidationFailed('Stock cannot be negative')
    for k, v in fields.items():
        if v is not None:
            setattr(obj, k, v)
    db.add(obj); db.commit(); db.refresh(obj)
    return obj


def delete_product(db: Session, product_id: int) -> Product:
    """Soft delete: the row stays so order history keeps its reference."""
    obj = get_product(db, product_id, include_inactive=True)
    obj.is_active = False
    db.add(obj); db.commit(); db.refresh(obj)
    logger.info("product %s deactivated", obj.id)
    return obj


def restore_product(db: Session, product_id: int) -> Product:
    obj = get_product(db, product_id, include_inactive=True)
    if obj.is_active:
        raise BusinessRuleViolation('Product is already active')
    obj.is_active = True
    db.add(obj); db.commit(); db.refresh(obj)
    return obj


def low_stock_products(db: Session, threshold: Optional[int] = None):
    threshold = settings.LOW_STOCK_THRESHOLD if threshold is None else threshold
    stmt = (select(Product)
            .where(Product.is_active.is_(True), Product.stock <= threshold)
            .order_by(Product.stock.asc(), Product.id.asc()))
    return db.execute(stmt).scalars().all()


def product_statistics(db: Session, threshold: Optional[int] = None) -> dict:
    threshold = settings.LOW_STOCK_THRESHOLD if threshold is None else threshold

    def count(*conds) -> int:
        return db.execute(select(func.count(Product.id)).where(*conds)).scalar_one()

    active = Product.is_active.is_(True)
    return {
        'total': count(),
        'active': count(active),
        'inactive': count(Product.is_active.is_(False)),
        'low_stock': count(active, Product.stock > 0, Product.stock <= threshold),
        'out_of_stock': count(active, Product.stock == 0),
    }


def bulk_update_stock(db: Session, updates: Iterable[Tuple[int, int]]) -> None:
    """Set absolute stock levels; all or nothing."""
    try:
        for product_id, stock in updates:
            if stock < 0:
                raise ValidationFailed(f'Stock cannot be negative for product {product_id}')
            obj = db.get(Product, product_id)
            if not obj:
                raise NotFound(f'Product {product_id} not found')
            obj.stock = stock
            db.add(obj)
        db.commit()
    except Exception:
        db.rollback()
        raise
