from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from sqlalchemy.orm import Session

from storefront.api.deps import get_db, get_optional_user, require_admin
from storefront.api.v1.schemas import BulkStockUpdate, ProductCreate, ProductPage, ProductRead, ProductStats, ProductUpdate
from storefront.db.models import User
from storefront.services import catalog

router = APIRouter()

@router.get('/', response_model=ProductPage)
def list_products(db: Session = Depends(get_db), user: Optional[User] = Depends(get_optional_user),
                  page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                  search: Optional[str] = Query(None, max_length=200),
                  min_price_cents: Optional[int] = Query(None, ge=0), max_price_cents: Optional[int] = Query(None, ge=0),
                  in_stock: Optional[bool] = None, include_inactive: bool = False):
    return catalog.list_products(
        db, page=page, limit=limit, search=search, min_price=min_price_cents, max_price=max_price_cents,
        in_stock=in_stock, include_inactive=include_inactive and user is not None and user.is_admin,
    )

@router.get('/admin/low-stock', response_model=List[ProductRead], dependencies=[Depends(require_admin)])
def low_stock(threshold: Optional[int] = Query(None, ge=0), db: Session = Depends(get_db)):
    return catalog.low_stock_products(db, threshold)

@router.get('/admin/statistics', response_model=ProductStats, dependencies=[Depends(require_admin)])
def statistics(db: Session = Depends(get_db)):
    return catalog.product_statistics(db)

@router.put('/admin/bulk-update-stock', dependencies=[Depends(require_admin)])
def bulk_update_stock(payload: BulkStockUpdate, db: Session = Depends(get_db)):
    catalog.bulk_update_stock(db, [(u.id, u.stock) for u in payload.updates])
    return {'status': 'updated', 'count': len(payload.updates)}

@router.get('/{product_id}', response_model=ProductRead)
def get_product(product_id: int, db: Session = Depends(get_db), user: Optional[User] = Depends(get_optional_user)):
    return catalog.get_product(db, product_id, include_inactive=user is not None and user.is_admin)

@router.post('/', response_model=ProductRead, status_code=201, dependencies=[Depends(require_admin)])
def create_product(payload: ProductCreate, db: Session = Depends(get_db)):
    return catalog.create_product(db, **payload.model_dump())

@router.patch('/{product_id}', response_model=ProductRead, dependencies=[Depends(require_admin)])
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    return catalog.update_product(db, product_id, **payload.model_dump(exclude_unset=True))

@router.delete('/{product_id}', response_model=ProductRead, dependencies=[Depends(require_admin)])
def delete_product(product_id: int, db: Session = Depends(get_db)):
    return catalog.delete_product(db, product_id)

@router.patch('/{product_id}/restore', response_model=ProductRead, dependencies=[Depends(require_admin)])
def restore_product(product_id: int, db: Session = Depends(get_db)):
    return catalog.restore_product(db, product_id)
