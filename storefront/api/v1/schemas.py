from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List

from storefront.db.models import OrderStatus, UserRole


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

# --- auth / users ---

class RegisterPayload(BaseModel):
    email: EmailStr
    name: str = Field(min_length=2, max_length=100)
    password: str = Field(min_length=8, max_length=128)
    role: Optional[UserRole] = UserRole.CUSTOMER

class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

class UserRead(BaseModel):
    id: int
    email: EmailStr
    name: str
    role: UserRole
    is_active: bool
    cancellation_count: int
    created_at: datetime
    class Config: from_attributes = True

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None

class ChangePasswordPayload(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8, max_length=128)

class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = 'bearer'

class AuthResponse(BaseModel):
    user: UserRead
    tokens: TokenPair

class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)

# --- products ---

class ProductBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default='', max_length=1000)
    price_cents: int = Field(gt=0, le=99_999_999)
    stock: int = Field(ge=0)

class ProductCreate(ProductBase): pass

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    price_cents: Optional[int] = Field(default=None, gt=0, le=99_999_999)
    stock: Optional[int] = Field(default=None, ge=0)

class ProductRead(ProductBase):
    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    class Config: from_attributes = True

class ProductPage(BaseModel):
    data: List[ProductRead]
    pagination: PageMeta

class StockUpdate(BaseModel):
    id: int
    stock: int = Field(ge=0)

class BulkStockUpdate(BaseModel):
    updates: List[StockUpdate] = Field(min_length=1)

class ProductStats(BaseModel):
    total: int
    active: int
    inactive: int
    low_stock: int
    out_of_stock: int

# --- cart ---

class CartItemAdd(BaseModel):
    product_id: int
    quantity: int = Field(ge=1, le=999)

class CartItemRemove(BaseModel):
    product_id: int
    quantity: Optional[int] = Field(default=None, ge=1)

class CartItemQuantity(BaseModel):
    quantity: int = Field(ge=0, le=999)

class CartProductRead(BaseModel):
    id: int
    name: str
    price_cents: int
    stock: int
    is_active: bool
    class Config: from_attributes = True

class CartItemRead(BaseModel):
    id: int
    product_id: int
    quantity: int
    product: CartProductRead
    class Config: from_attributes = True

class CartRead(BaseModel):
    id: int
    items: List[CartItemRead] = []
    total_items: int
    total_cents: int

class CartSummary(BaseModel):
    item_count: int
    total_cents: int
    is_empty: bool

class CartValidation(BaseModel):
    is_valid: bool
    errors: List[str] = []

# --- orders ---

class CreateOrderPayload(BaseModel):
    payment_method: Optional[str] = Field(default=None, min_length=1, max_length=64)

class OrderItemRead(BaseModel):
    id: int
    product_id: int
    quantity: int
    price_cents: int
    name_snapshot: str
    class Config: from_attributes = True

class OrderRead(BaseModel):
    id: int
    user_id: int
    status: OrderStatus
    total_cents: int
    payment_method: str
    transaction_id: str
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemRead] = []
    class Config: from_attributes = True

class OrderPage(BaseModel):
    data: List[OrderRead]
    pagination: PageMeta

class StatusUpdate(BaseModel):
    status: OrderStatus

class OrderStats(BaseModel):
    total_orders: int
    pending_orders: int
    shipped_orders: int
    delivered_orders: int
    cancelled_orders: int
    total_revenue_cents: int

class RevenuePoint(BaseModel):
    date: str
    revenue_cents: int
    order_count: int
