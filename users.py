import logging
from typing import Any, Dict, List

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import AuthContext, create_token, hash_password, verify_password
from config import Settings
from database import USERS, create_document, serialize_doc, to_object_id, utcnow
from errors import Conflict, Forbidden, NotFound, Unauthenticated, ValidationFailed
from schemas import (
    LoginRequest,
    RegisterRequest,
    Role,
    User,
    UserCreateRequest,
    UserUpdateRequest,
)

logger = logging.getLogger(__name__)

HIDDEN_FIELDS = ("password",)


def public_user(doc: dict) -> Dict[str, Any]:
    return serialize_doc(doc, exclude=HIDDEN_FIELDS)


class UserService:
    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.collection = db[USERS]
        self.settings = settings

    def _insert(self, user: User) -> dict:
        if self.collection.find_one({"email": user.email}):
            raise Conflict("User already exists")
        try:
            _id = create_document(self.db, USERS, user)
        except DuplicateKeyError:
            raise Conflict("User already exists")
        return self.collection.find_one({"_id": _id})

    def _session(self, doc: dict) -> Dict[str, Any]:
        return {
            "token": create_token(doc, self.settings),
            "user": {"id": str(doc["_id"]), "name": doc["name"], "email": doc["email"], "role": doc["role"]},
        }

    def register(self, req: RegisterRequest) -> Dict[str, Any]:
        user = User(name=req.name, email=req.email, password=hash_password(req.password), role=Role.USER)
        doc = self._insert(user)
        logger.info("Registered user %s", doc["_id"])
        return self._session(doc)

    def login(self, req: LoginRequest) -> Dict[str, Any]:
        doc = self.collection.find_one({"email": req.email})
        if not doc or not verify_password(req.password, doc.get("password", "")):
            raise Unauthenticated("Invalid credentials")
        return self._session(doc)

    def me(self, actor: AuthContext) -> Dict[str, Any]:
        return self._get_doc(actor.id)

    def list(self) -> Dict[str, List[dict]]:
        return {"users": [public_user(doc) for doc in self.collection.find()]}

    def create(self, req: UserCreateRequest) -> Dict[str, Any]:
        fields = req.model_dump(exclude={"password"})
        user = User(**fields, password=hash_password(req.password))
        doc = self._insert(user)
        logger.info("Admin created user %s with role %s", doc["_id"], doc["role"])
        return public_user(doc)

    def _get_doc(self, user_id: str) -> Dict[str, Any]:
        oid = to_object_id(user_id)
        doc = self.collection.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFound("User not found")
        return public_user(doc)

    @staticmethod
    def _check_self_or_admin(actor: AuthContext, user_id: str):
        if not actor.is_admin and actor.id != user_id:
            raise Forbidden("Not authorized")

    def get(self, actor: AuthContext, user_id: str) -> Dict[str, Any]:
        self._check_self_or_admin(actor, user_id)
        return self._get_doc(user_id)

    def update(self, actor: AuthContext, user_id: str, req: UserUpdateRequest) -> Dict[str, Any]:
        self._check_self_or_admin(actor, user_id)
        updates = req.model_dump(by_alias=True, exclude_none=True, exclude={"preferences"})
        if req.preferences is not None:
            # only the flags the client sent; the rest keep their stored values
            flags = req.preferences.notifications.model_dump(by_alias=True, exclude_unset=True)
            for flag, value in flags.items():
                updates[f"preferences.notifications.{flag}"] = value
        oid = to_object_id(user_id)
        if not updates:
            return self._get_doc(user_id)
        updates["updatedAt"] = utcnow()
        doc = self.collection.find_one_and_update(
            {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
        ) if oid else None
        if not doc:
            raise NotFound("User not found")
        return public_user(doc)

    def delete(self, actor: AuthContext, user_id: str):
        if not actor.is_admin:
            raise Forbidden("Not authorized")
        if actor.id == user_id:
            raise ValidationFailed.single("id", "Cannot delete your own account")
        oid = to_object_id(user_id)
        result = self.collection.delete_one({"_id": oid}) if oid else None
        if result is None or result.deleted_count == 0:
            raise NotFound("User not found")
        logger.info("User %s deleted by %s", oid, actor.id)
