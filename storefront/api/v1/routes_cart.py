from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_db, require_customer
from storefront.api.v1.schemas import CartItemAdd, CartItemQuantity, CartItemRemove, CartRead, CartSummary, CartValidation
from storefront.db.models import User
from storefront.services import cart as cart_service

router = APIRouter()

@router.get("/", response_model=CartRead)
def get_my_cart(user: User = Depends(require_customer), db: Session = Depends(get_db)):
    return cart_service.get_cart(db, user.id)

@router.post("/items", response_model=CartRead, status_code=201)
def add_item(payload: CartItemAdd, user: User = Depends(require_customer), db: Session = Depends(get_db)):
    return cart_service.add_item(db, user.id, payload.product_id, payload.quantity)

@router.post("/remove", response_model=CartRead)
def remove_item(payload: CartItemRemove, user: User = Depends(require_customer), db: Session = Depends(get_db)):
    return cart_service.remove_item(db, user.id, payload.product_id, payload.quantity)

@router.put("/items/{product_id}", response_model=CartRead)
def update_item(product_id: int, payload: CartItemQuantity, user: User = Depends(require_customer), db: Session = Depends(get_db)):
    return cart_service.update_item_quantity(db, user.id, product_id, payload.quantity)

@router.delete("/clear", response_model=CartRead)
def clear(user: User = Depends(require_customer), db: Session = Depends(get_db)):
    cart_service.clear_cart(db, user.id)
    return cart_service.get_cart(db, user.id)

@router.get("/count")
def count(user: User = Depends(require_customer), db: Session = Depends(get_db)):
    return {"count": cart_service.item_count(db, user.id)}

@router.get("/summary", response_model=CartSummary)
def summary(user: User = Depends(require_customer), db: Session = Depends(get_db)):
    return cart_service.summary(db, user.id)

@router.get("/validate", response_model=CartValidation)
def validate(user: User = Depends(require_customer), db: Session = Depends(get_db)):
    check = cart_service.validate_for_checkout(db, user.id)
    return CartValidation(is_valid=check.is_valid, errors=check.errors)

@router.post("/cleanup", response_model=CartRead)
def cleanup(user: User = Depends(require_customer), db: Session = Depends(get_db)):
    return cart_service.cleanup(db, user.id)

@router.get("/check/{product_id}")
def check_product(product_id: int, user: User = Depends(require_customer), db: Session = Depends(get_db)):
    return {"product_id": product_id, "in_cart": cart_service.contains(db, user.id, product_id)}
