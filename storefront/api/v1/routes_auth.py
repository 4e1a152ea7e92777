import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront.api.deps import get_db, get_current_user
from storefront.api.v1.schemas import (
    AuthResponse,
    ChangePasswordPayload,
    LoginPayload,
    ProfileUpdate,
    RefreshRequest,
    RegisterPayload,
    TokenPair,
    UserRead,
)
from storefront.core.errors import Conflict, Forbidden, Unauthorized
from storefront.db.models import User, RefreshToken, UserRole
from storefront.security.utils import (
    hash_password,
    verify_password,
    create_access_token,
    create_refresh_token,
    token_sha256,
    now_utc,
    decode_token,
)

logger = logging.getLogger(__name__)

router = APIRouter()  # main.py mounts at /auth


def _issue_tokens(user: User, db: Session) -> TokenPair:
    access, _ = create_access_token(user.email, user.role.value)
    refresh, jti, exp = create_refresh_token(user.email)
    db.add(
        RefreshToken(
            user_id=user.id,
            jti=jti,
            token_hash=token_sha256(refresh),
            expires_at=exp,
            revoked=False,
            created_at=now_utc(),
        )
    )
    return TokenPair(access_token=access, refresh_token=refresh)


def _revoke_all(user_id: int, db: Session) -> None:
    db.query(RefreshToken).filter(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False)).update(
        {RefreshToken.revoked: True}, synchronize_session=False
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterPayload, db: Session = Depends(get_db)) -> AuthResponse:
    email = str(payload.email).lower()
    # Prevent duplicate email
    if db.query(User).filter(User.email == email).first():
        raise Conflict("User with this email already exists")

    user = User(
        email=email,
        name=payload.name,
        password_hash=hash_password(payload.password),
        role=payload.role or UserRole.CUSTOMER,
    )
    db.add(user)
    db.flush()
    tokens = _issue_tokens(user, db)
    db.commit()
    db.refresh(user)
    logger.info("registered user %s (%s)", user.id, user.role.value)
    return AuthResponse(user=UserRead.model_validate(user), tokens=tokens)


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginPayload, db: Session = Depends(get_db)) -> AuthResponse:
    user = db.query(User).filter(User.email == str(payload.email).lower()).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise Unauthorized("Invalid email or password")
    if not user.is_active:
        raise Forbidden("Account has been deactivated")

    tokens = _issue_tokens(user, db)
    db.commit()
    return AuthResponse(user=UserRead.model_validate(user), tokens=tokens)


@router.post("/refresh", response_model=TokenPair, status_code=status.HTTP_200_OK)
def refresh_token(payload: RefreshRequest, db: Session = Depends(get_db)) -> TokenPair:
    # 1) Decode & validate refresh token
    try:
        claims = decode_token(payload.refresh_token)
    except Exception:
        raise Unauthorized("Invalid refresh token")

    if claims.get("type") != "refresh":
        raise Unauthorized("Invalid token type")

    jti = claims.get("jti")
    email = claims.get("sub")
    if not jti or not email:
        raise Unauthorized("Invalid refresh token")

    # 2) Verify token record (not revoked/expired and matches user)
    rt = (
        db.query(RefreshToken)
        .join(User)
        .filter(RefreshToken.jti == jti, User.email == email)
        .first()
    )
    if not rt or rt.revoked or rt.expires_at < now_utc() or rt.token_hash != token_sha256(payload.refresh_token):
        raise Unauthorized("Refresh token not valid")
    if not rt.user.is_active:
        raise Forbidden("Account has been deactivated")

    # 3) Revoke the used refresh token, 4) issue a new pair
    rt.revoked = True
    db.add(rt)
    tokens = _issue_tokens(rt.user, db)
    db.commit()
    return tokens


@router.post("/logout", status_code=status.HTTP_200_OK)
def logout(payload: RefreshRequest, db: Session = Depends(get_db)) -> dict:
    try:
        claims = decode_token(payload.refresh_token)
    except Exception:
        raise Unauthorized("Invalid refresh token")

    if claims.get("type") != "refresh":
        raise Unauthorized("Invalid token type")

    jti = claims.get("jti")
    if not jti:
        raise Unauthorized("Invalid refresh token")

    # Revoke it if present
    rt = db.query(RefreshToken).filter(RefreshToken.jti == jti).first()
    if rt and not rt.revoked:
        rt.revoked = True
        db.add(rt)
        db.commit()

    return {"status": "ok"}


@router.post("/logout-all", status_code=status.HTTP_200_OK)
def logout_all(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    _revoke_all(user.id, db)
    db.commit()
    return {"status": "ok"}


@router.get("/profile", response_model=UserRead)
def profile(user: User = Depends(get_current_user)):
    return user


@router.put("/profile", response_model=UserRead)
def update_profile(payload: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if payload.email is not None:
        email = str(payload.email).lower()
        taken = db.query(User).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise Conflict("Email already taken")
        user.email = email
    if payload.name is not None:
        user.name = payload.name
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.put("/change-password", status_code=status.HTTP_200_OK)
def change_password(payload: ChangePasswordPayload, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    if not verify_password(payload.current_password, user.password_hash):
        raise Unauthorized("Current password is incorrect")
    user.password_hash = hash_password(payload.new_password)
    db.add(user)
    _revoke_all(user.id, db)
    db.commit()
    return {"status": "ok"}
