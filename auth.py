import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, Request
from jose import jwt, JWTError
from passlib.context import CryptContext
from pydantic import BaseModel
from pymongo.database import Database

from config import Settings
from database import USERS, to_object_id
from errors import Forbidden, Unauthenticated
from schemas import Role

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthContext(BaseModel):
    """The authenticated caller, resolved from the bearer token."""

    id: str
    email: str
    name: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_token(user: dict, settings: Settings) -> str:
    payload = {
        "sub": str(user["_id"]),
        "role": user.get("role", Role.USER.value),
        "exp": datetime.now(timezone.utc) + timedelta(days=settings.token_ttl_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


# Dependencies

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Database:
    return request.app.state.db


def resolve_token(token: str, db: Database, settings: Settings) -> AuthContext:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise Unauthenticated("Invalid token")
    user_id = to_object_id(payload.get("sub"))
    user = db[USERS].find_one({"_id": user_id}) if user_id else None
    if not user:
        raise Unauthenticated("Invalid token user")
    return AuthContext(id=str(user["_id"]), email=user["email"], name=user["name"], role=user.get("role", Role.USER.value))


def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AuthContext:
    if not authorization:
        raise Unauthenticated("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Invalid Authorization header")
    return resolve_token(token.strip(), db, settings)


def require_admin(user: AuthContext = Depends(get_current_user)) -> AuthContext:
    if not user.is_admin:
        logger.warning("Admin-only access denied to user %s", user.id)
        raise Forbidden("Admin only")
    return user
