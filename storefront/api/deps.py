from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from storefront.core.errors import Forbidden, Unauthorized
from storefront.db.models import User, UserRole
from storefront.db.session import SessionLocal
from storefront.security.utils import decode_token
from storefront.services.payment import PaymentGateway, default_gateway

security = HTTPBearer(auto_error=False)

_gateway: Optional[PaymentGateway] = None

def get_db():
    db = SessionLocal()
    try: yield db
    finally: db.close()

def _user_from_token(token: str, db: Session) -> User:
    try:
        payload = decode_token(token)
    except Exception:
        raise Unauthorized('Invalid token')
    if payload.get('type') != 'access':
        raise Unauthorized('Invalid access token')
    user = db.query(User).filter(User.email == payload.get('sub')).first()
    if not user: raise Unauthorized('User not found')
    if not user.is_active: raise Forbidden('Account has been deactivated')
    return user

def get_current_user(creds: HTTPAuthorizationCredentials = Depends(security), db: Session = Depends(get_db)) -> User:
    if not creds: raise Unauthorized('Not authenticated')
    return _user_from_token(creds.credentials, db)

def get_optional_user(creds: HTTPAuthorizationCredentials = Depends(security), db: Session = Depends(get_db)) -> Optional[User]:
    if not creds: return None
    return _user_from_token(creds.credentials, db)

def require_role(required: UserRole):
    def _checker(user: User = Depends(get_current_user)) -> User:
        if user.role != required:
            raise Forbidden('Admin only' if required == UserRole.ADMIN else 'Customers only')
        return user
    return _checker

require_admin = require_role(UserRole.ADMIN)
require_customer = require_role(UserRole.CUSTOMER)

def get_payment_gateway() -> PaymentGateway:
    global _gateway
    if _gateway is None:
        _gateway = default_gateway()
    return _gateway
