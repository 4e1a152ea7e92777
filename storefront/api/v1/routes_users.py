from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_db, require_admin
from storefront.api.v1.schemas import UserRead
from storefront.db.models import User

router = APIRouter()

@router.get("/", response_model=List[UserRead], dependencies=[Depends(require_admin)])
def list_users(db: Session = Depends(get_db)):
    return db.query(User).order_by(User.id).all()
