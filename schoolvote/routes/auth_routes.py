import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request
from pymongo.database import Database

from .. import crud
from ..database.connection import get_database
from ..schemas import LoginRequest, TokenResponse, UserCreate, UserOut
from ..security import create_access_token, get_current_user, require_permission
from . import client_ip

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])


@router.post("/auth/login", response_model=TokenResponse)
def login(credentials: LoginRequest, request: Request, db: Database = Depends(get_database)):
    user, error = crud.authenticate_user(db, credentials.username, credentials.password)
    if error:
        logger.warning(f"Failed login for {credentials.username}")
        raise HTTPException(status_code=401, detail=error)
    token = create_access_token({"sub": str(user["_id"]), "role": user.get("role")})
    crud.record_activity(
        db, "login", "user", entity_id=str(user["_id"]),
        details=f"{user['username']} logged in", user=user, ip_address=client_ip(request),
    )
    return {"access_token": token, "token_type": "bearer", "user": crud.user_out(user)}


@router.get("/auth/me", response_model=UserOut)
def me(user: Dict[str, Any] = Depends(get_current_user)):
    return crud.user_out(user)


@router.get("/users", response_model=List[UserOut])
def get_users(
    db: Database = Depends(get_database),
    _: Dict[str, Any] = Depends(require_permission("users", "view")),
):
    return crud.list_users(db)


@router.post("/users", response_model=UserOut, status_code=201)
def add_user(
    new_user: UserCreate,
    request: Request,
    db: Database = Depends(get_database),
    admin: Dict[str, Any] = Depends(require_permission("users", "add")),
):
    created = crud.create_user(db, new_user)
    if not created:
        raise HTTPException(status_code=400, detail="Could not create user. Username may already exist.")
    crud.record_activity(
        db, "create", "user", entity_id=created["id"],
        details=f"Created {created['role']} account {created['username']}", user=admin, ip_address=client_ip(request),
    )
    return created
