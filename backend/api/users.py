import logging
import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from models.db import (
    create_user,
    delete_user,
    get_user,
    list_users,
    rotate_user_token,
    toggle_user_active,
    update_user_profile,
    update_user_role,
)
from models.schemas import ProfileUpdate, Role, RoleUpdate, User, UserCreate
from services.identity import Identity
from .common import current_identity, message, require_roles


logger = logging.getLogger(__name__)

router = APIRouter()

_admin = require_roles("admin")


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"message": "User not found"})


@router.get("/auth/me")
def me(identity: Identity = Depends(current_identity)):
    row = get_user(identity.user_id)
    if not row:
        return _not_found()
    return User.from_row(row).to_json_dict()


@router.post("/users", status_code=201)
def create_user_route(body: UserCreate, identity: Identity = Depends(_admin)):
    try:
        row, token = create_user(body.email, body.name, role=body.role, mobile=body.mobile)
    except sqlite3.IntegrityError:
        return JSONResponse(status_code=409, content={"message": "Email already registered"})
    logger.info(f"User {row['id']} ({body.role}) created by {identity.user_id}")
    return {"user": User.from_row(row).to_json_dict(), "token": token}


@router.get("/users")
def list_users_route(role: Optional[Role] = Query(None), identity: Identity = Depends(_admin)):
    users = [User.from_row(row).to_json_dict() for row in list_users(role)]
    return {"users": users, "total": len(users)}


@router.put("/users/profile")
def update_profile(body: ProfileUpdate, identity: Identity = Depends(current_identity)):
    if not update_user_profile(identity.user_id, name=body.name, mobile=body.mobile):
        return _not_found()
    return message("Profile updated successfully", user=User.from_row(get_user(identity.user_id)).to_json_dict())


@router.get("/users/{user_id}")
def get_user_route(user_id: str, identity: Identity = Depends(_admin)):
    row = get_user(user_id)
    if not row:
        return _not_found()
    return User.from_row(row).to_json_dict()


@router.put("/users/{user_id}/role")
def update_role(user_id: str, body: RoleUpdate, identity: Identity = Depends(_admin)):
    if not update_user_role(user_id, body.role):
        return _not_found()
    logger.info(f"User {user_id} role set to {body.role} by {identity.user_id}")
    return message("User role updated successfully", user=User.from_row(get_user(user_id)).to_json_dict())


@router.put("/users/{user_id}/toggle-status")
def toggle_status(user_id: str, identity: Identity = Depends(_admin)):
    active = toggle_user_active(user_id)
    if active is None:
        return _not_found()
    state = "activated" if active else "deactivated"
    logger.info(f"User {user_id} {state} by {identity.user_id}")
    return message(f"User {state} successfully", user=User.from_row(get_user(user_id)).to_json_dict())


@router.post("/users/{user_id}/token")
def rotate_token(user_id: str, identity: Identity = Depends(_admin)):
    token = rotate_user_token(user_id)
    if token is None:
        return _not_found()
    return {"token": token}


@router.delete("/users/{user_id}")
def delete_user_route(user_id: str, identity: Identity = Depends(_admin)):
    if not delete_user(user_id):
        return _not_found()
    logger.info(f"User {user_id} deleted by {identity.user_id}")
    return message("User deleted successfully")
