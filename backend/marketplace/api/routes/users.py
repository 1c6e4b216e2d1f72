"""
User routes

Account plumbing: sign-up, login, profile, admin rights. Logging in and reading the
profile also reconcile the stored cart so the client learns about
sold-out or reduced items straight away.
"""
import logging
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy import select, delete, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_active_user, get_current_user
from marketplace.core.config import settings
from marketplace.core.cookies import set_auth_cookie, clear_auth_cookie
from marketplace.core.database import get_db
from marketplace.core.exceptions import AuthenticationError, NotFoundError, PermissionDeniedError, ValidationError
from marketplace.core.rate_limit import limiter
from marketplace.core.security import create_access_token, get_password_hash, verify_password
from marketplace.models import CartItem, Order, Product, User
from marketplace.models.user import USER_STATUS_ACTIVE, USER_STATUS_PENDING
from marketplace.schemas.user import (
    AdminChange,
    PublicUserResponse,
    Token,
    UserCreate,
    UserLogin,
    UserMeResponse,
    UserResponse,
    UserUpdate,
)
from marketplace.services.reconciler import update_user_cart

logger = logging.getLogger(__name__)

router = APIRouter()

ADDRESS_FIELDS = ("first_name", "last_name", "street", "zip_code", "city", "country", "phone")


async def _ensure_unique(db: AsyncSession, email=None, username=None, exclude_id=None) -> None:
    conditions = []
    if email is not None:
        conditions.append(User.email == email)
    if username is not None:
        conditions.append(User.username == username)
    if not conditions:
        return

    query = select(User).where(or_(*conditions))
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    existing = (await db.execute(query)).scalars().first()
    if existing is None:
        return
    if email is not None and existing.email == email:
        raise ValidationError("Email already registered")
    raise ValidationError("Username already taken")


@router.post("", response_model=Token, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def create_user(
    request: Request,
    response: Response,
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register a new account and log it in."""
    email = user_data.email.lower()
    await _ensure_unique(db, email=email, username=user_data.username)

    user = User(
        email=email,
        username=user_data.username,
        hashed_password=get_password_hash(user_data.password),
        status=USER_STATUS_ACTIVE if settings.AUTO_ACTIVATE_ACCOUNTS else USER_STATUS_PENDING,
        **{field: getattr(user_data, field) for field in ADDRESS_FIELDS},
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info(f"[users] Created user {user.id} status={user.status}")

    access_token = create_access_token({"sub": user.id})
    set_auth_cookie(response, access_token)
    return Token(access_token=access_token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=Token)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def login(
    request: Request,
    response: Response,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(User).where(User.email == credentials.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.info(f"[users] Failed login for {credentials.email}")
        raise AuthenticationError("Invalid email or password")

    reconciled = await update_user_cart(db, user)

    access_token = create_access_token({"sub": user.id})
    set_auth_cookie(response, access_token)
    return Token(
        access_token=access_token,
        user=UserResponse.model_validate(user),
        is_different=reconciled.is_different,
    )


@router.post("/logout")
async def logout(response: Response):
    clear_auth_cookie(response)
    return {"message": "Logged out"}


@router.get("/me", response_model=UserMeResponse)
async def read_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    reconciled = await update_user_cart(db, user)
    me = UserMeResponse.model_validate(user)
    me.is_different = reconciled.is_different
    return me


@router.patch("/me", response_model=UserResponse)
async def update_me(
    user_data: UserUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    changes = user_data.model_dump(exclude_unset=True)
    if "email" in changes and changes["email"] is not None:
        changes["email"] = changes["email"].lower()

    await _ensure_unique(
        db,
        email=changes.get("email"),
        username=changes.get("username"),
        exclude_id=user.id,
    )

    password = changes.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)
    for field, value in changes.items():
        if field in ("email", "username") and value is None:
            continue
        setattr(user, field, value)

    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Remove the account together with every product it lists."""
    user_id = user.id
    await db.execute(delete(Product).where(Product.seller_id == user_id))
    await db.execute(delete(CartItem).where(CartItem.user_id == user_id))
    # Orders stay; the removed party resolves to null
    await db.execute(update(Order).where(Order.seller_id == user_id).values(seller_id=None))
    await db.execute(update(Order).where(Order.buyer_id == user_id).values(buyer_id=None))
    await db.execute(delete(User).where(User.id == user_id))
    await db.commit()

    logger.info(f"[users] Deleted user {user_id}")
    clear_auth_cookie(response)
    return None


async def _admin_target(db: AsyncSession, admin: User, email: str) -> User:
    if not admin.is_admin:
        raise PermissionDeniedError("You are not allowed to do that")
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User with given email does not exist")
    return user


@router.patch("/add-admin")
async def add_admin(
    payload: AdminChange,
    admin: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Grant admin rights to an active account."""
    user = await _admin_target(db, admin, payload.email)
    if user.id == admin.id:
        raise ValidationError("You are already an admin")
    if not user.is_active:
        raise ValidationError("This user has not activated the account yet")
    if user.is_admin:
        raise ValidationError("This user is already an admin")

    user.is_admin = True
    await db.commit()
    logger.info(f"[users] Admin {admin.id} granted admin to user {user.id}")
    return {"message": "Admin added"}


@router.patch("/remove-admin")
async def remove_admin(
    payload: AdminChange,
    admin: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    user = await _admin_target(db, admin, payload.email)
    if not user.is_admin:
        raise ValidationError("This user is not an admin so the action is not needed")

    user.is_admin = False
    await db.commit()
    logger.info(f"[users] Admin {admin.id} revoked admin from user {user.id}")
    return {"message": "Admin removed"}


@router.get("/{username}", response_model=PublicUserResponse)
async def read_user(username: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return PublicUserResponse.model_validate(user)
