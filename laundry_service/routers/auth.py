import uuid
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from laundry_service.auth import hash_password, verify_password, create_jwt, get_current_user, admin_required
from laundry_service.database import database, row_to_dict
from laundry_service.errors import Conflict, Unauthorized, NotFound, ValidationFailed
from laundry_service.models import users, Role
from laundry_service.schemas import RegisterRequest, LoginRequest, AuthResponse, User, UserStatusUpdate, AuthUser

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("laundry-service.auth")


async def _load_user(user_id: str) -> dict:
    user = row_to_dict(users, await database.fetch_one(users.select().where(users.c.id == user_id)))
    if user is None:
        raise NotFound("User not found")
    return user


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest):
    email = body.email.lower()
    existing = await database.fetch_one(users.select().where(users.c.email == email))
    if existing:
        raise Conflict("User already exists")

    user_id = str(uuid.uuid4())
    now = datetime.utcnow()
    values = {
        "id": user_id,
        "name": body.name.strip(),
        "email": email,
        "phone_number": body.phone_number,
        "address": body.address,
        "password_hash": hash_password(body.password),
        "role": Role.customer.value,
        "is_active": True,
        "member_since": now,
        "updated_at": now,
    }
    await database.execute(users.insert().values(**values))
    logger.info(f"👤 Registered {email} ({user_id})")
    return {"token": create_jwt(user_id, Role.customer.value), "user": values}


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest):
    row = await database.fetch_one(users.select().where(users.c.email == body.email.lower()))
    user = row_to_dict(users, row)
    if not user or not verify_password(body.password, user["password_hash"]):
        raise Unauthorized("Invalid credentials")
    if not user["is_active"]:
        raise Unauthorized("Account is deactivated")

    logger.info(f"🔑 Login {user['email']} ({user['role']})")
    return {"token": create_jwt(user["id"], user["role"]), "user": user}


@router.get("/profile", response_model=User)
async def profile(user: AuthUser = Depends(get_current_user)):
    return await _load_user(user.id)


@router.get("/users", response_model=List[User])
async def list_users(role: Optional[Role] = Query(None), admin: AuthUser = Depends(admin_required)):
    query = users.select()
    if role is not None:
        query = query.where(users.c.role == role.value)
    rows = await database.fetch_all(query.order_by(users.c.member_since.desc()))
    return [row_to_dict(users, r) for r in rows]


@router.patch("/users/{user_id}/status", response_model=User)
async def update_user_status(user_id: str, body: UserStatusUpdate, admin: AuthUser = Depends(admin_required)):
    await _load_user(user_id)
    if user_id == admin.id and (body.is_active is False or (body.role is not None and body.role != Role.admin)):
        raise ValidationFailed("Admins cannot deactivate or demote themselves")

    values = {"updated_at": datetime.utcnow()}
    if body.is_active is not None:
        values["is_active"] = body.is_active
    if body.role is not None:
        values["role"] = body.role.value
    await database.execute(users.update().where(users.c.id == user_id).values(**values))

    logger.info(f"[TRACE {admin.trace_id}] 🛂 User {user_id} updated by {admin.id}: {values}")
    return await _load_user(user_id)
