import os
import uuid
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Request
from jose import jwt, JWTError
from passlib.context import CryptContext
from dotenv import load_dotenv

from laundry_service.database import database, row_to_dict
from laundry_service.errors import Unauthorized, AccessDenied, ValidationFailed
from laundry_service.models import users, drivers, Role
from laundry_service.schemas import AuthUser

load_dotenv()

JWT_SECRET = os.getenv("JWT_SECRET", "demo_secret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXP_DAYS = int(os.getenv("JWT_EXP_DAYS", "7"))

logger = logging.getLogger("laundry-service.auth")

# ---------------------------------------------------------
# Password Hashing
# ---------------------------------------------------------
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
MAX_BCRYPT_BYTES = 72  # bcrypt limit


def hash_password(password: str) -> str:
    """Hash password safely & check 72-byte bcrypt rule."""
    if len(password.encode("utf-8")) > MAX_BCRYPT_BYTES:
        raise ValidationFailed(f"Password too long. Max {MAX_BCRYPT_BYTES} bytes allowed.")
    return pwd_context.hash(password)


def verify_password(raw: str, hashed: str) -> bool:
    b = raw.encode("utf-8")
    if len(b) > MAX_BCRYPT_BYTES:
        raw = b[:MAX_BCRYPT_BYTES].decode("utf-8", errors="ignore")
    return pwd_context.verify(raw, hashed)


# ---------------------------------------------------------
# JWT
# ---------------------------------------------------------
def create_jwt(user_id: str, role: str) -> str:
    payload = {
        "sub": user_id,
        "role": role,
        "exp": datetime.utcnow() + timedelta(days=JWT_EXP_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_jwt(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None


def bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization")
    if not auth or not auth.lower().startswith("bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


async def resolve_token(token: Optional[str], trace_id: Optional[str] = None) -> Optional[AuthUser]:
    """Map a bearer token to the stored, active user. The role always comes from the database."""
    if not token:
        return None
    payload = decode_jwt(token)
    if not payload or not payload.get("sub"):
        return None

    row = await database.fetch_one(users.select().where(users.c.id == payload["sub"]))
    user = row_to_dict(users, row)
    if not user or not user["is_active"]:
        return None

    return AuthUser(
        id=user["id"],
        role=user["role"],
        name=user["name"],
        email=user["email"],
        phone_number=user["phone_number"],
        address=user["address"],
        trace_id=trace_id,
    )


# ---------------------------------------------------------
# Dependencies
# ---------------------------------------------------------
async def get_current_user(request: Request) -> AuthUser:
    trace_id = getattr(request.state, "trace_id", None) or str(uuid.uuid4())
    token = bearer_token(request)
    if not token:
        raise Unauthorized("No token, authorization denied")

    user = await resolve_token(token, trace_id)
    if user is None:
        logger.info(f"[TRACE {trace_id}] rejected bearer token")
        raise Unauthorized("Token is not valid")
    return user


def admin_required(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if user.role != Role.admin:
        raise AccessDenied("Access denied")
    return user


def driver_required(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if user.role != Role.driver:
        raise AccessDenied("Drivers only")
    return user


def staff_required(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if user.role not in (Role.admin, Role.driver):
        raise AccessDenied("Access denied")
    return user


async def linked_driver_ids(user: AuthUser) -> set:
    """Ids a driver account acts as: its own user id and any driver record linked to it."""
    ids = {user.id}
    rows = await database.fetch_all(drivers.select().where(drivers.c.user_id == user.id))
    ids.update(row["id"] for row in rows)
    return ids


async def can_read_order(order: dict, user: AuthUser) -> bool:
    """Admins read any order, customers their own, drivers the ones assigned to them."""
    if user.role == Role.admin:
        return True
    if user.role == Role.customer:
        return order["customer_id"] == user.id
    return order["driver_id"] is not None and order["driver_id"] in await linked_driver_ids(user)
