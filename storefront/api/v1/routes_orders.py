from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user, get_db, get_payment_gateway, require_admin
from storefront.api.v1.schemas import CreateOrderPayload, OrderPage, OrderRead, OrderStats, RevenuePoint, StatusUpdate
from storefront.db.models import OrderStatus, User
from storefront.services import orders as order_service
from storefront.services import reports
from storefront.services.payment import PaymentGateway

router = APIRouter()

@router.post("/", response_model=OrderRead, status_code=201)
def create_order(payload: Optional[CreateOrderPayload] = None, user: User = Depends(get_current_user),
                 db: Session = Depends(get_db), gateway: PaymentGateway = Depends(get_payment_gateway)):
    method = payload.payment_method if payload else None
    return order_service.create_order(db, user, gateway, payment_method=method)

@router.get("/", response_model=OrderPage)
def list_orders(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                status: Optional[OrderStatus] = None,
                user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if user.is_admin:
        return order_service.list_all_orders(db, page, limit, status)
    return order_service.list_user_orders(db, user.id, page, limit)

@router.get("/filter/date-range", response_model=List[OrderRead])
def orders_by_date_range(start_date: date, end_date: date,
                         user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return order_service.orders_by_date_range(db, start_date, end_date, None if user.is_admin else user.id)

@router.get("/admin/statistics", response_model=OrderStats, dependencies=[Depends(require_admin)])
def statistics(db: Session = Depends(get_db)):
    return reports.order_statistics(db)

@router.get("/admin/recent", response_model=List[OrderRead], dependencies=[Depends(require_admin)])
def recent(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db)):
    return reports.recent_orders(db, limit)

@router.get("/admin/revenue", response_model=List[RevenuePoint], dependencies=[Depends(require_admin)])
def revenue(period: Literal["day", "week", "month", "year"] = "day", limit: int = Query(30, ge=1, le=365),
            db: Session = Depends(get_db)):
    return reports.revenue_by_period(db, period, limit)

@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    # admins see any order, customers only their own
    return order_service.get_order(db, order_id, None if user.is_admin else user.id)

@router.patch("/{order_id}/cancel", response_model=OrderRead)
def cancel_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return order_service.cancel_order(db, order_id, user)

@router.put("/{order_id}/status", response_model=OrderRead, dependencies=[Depends(require_admin)])
def update_status(order_id: int, payload: StatusUpdate, db: Session = Depends(get_db)):
    return order_service.update_status(db, order_id, payload.status)
