"""
Identity provider client: sign-up, sign-in, current user, sign-out.

Holds the signed-in session for this device the way a hosted auth client
does. Tokens are HS256 JWTs carrying the user id and admin flag.
"""
import hashlib
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from pymongo.errors import DuplicateKeyError

from database import create_document
from errors import AuthError, ValidationError
from schemas import Session, User, UserProfile
from stores import HostedCollection, collaborator_call, to_object_id

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
TOKEN_LIFETIME = timedelta(days=7)


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


def create_token(payload: dict) -> str:
    exp = datetime.now(timezone.utc) + TOKEN_LIFETIME
    to_encode = {**payload, "exp": exp}
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token")


def _profile(doc: dict) -> UserProfile:
    return UserProfile(
        id=str(doc["_id"]),
        name=doc.get("name", ""),
        email=doc["email"],
        is_admin=doc.get("is_admin", False),
    )


class IdentityProvider(HostedCollection):
    collection_name = "user"

    def __init__(self, database):
        super().__init__(database)
        self.session: Optional[Session] = None

    def _open_session(self, profile: UserProfile) -> Session:
        token = create_token({"id": profile.id, "email": profile.email, "is_admin": profile.is_admin})
        self.session = Session(token=token, user=profile)
        return self.session

    def sign_up(self, email: str, password: str, display_name: str) -> Session:
        if not email or not password or not display_name:
            raise ValidationError("Please fill in all fields")
        with collaborator_call("sign up"):
            if self.collection.find_one({"email": email}):
                raise ValidationError("Email already registered", {"email": "Email already registered"})
            user = User(name=display_name, email=email, password_hash=hash_password(password))
            try:
                user_id = create_document(self.collection_name, user, database=self.connected)
            except DuplicateKeyError:
                raise ValidationError("Email already registered", {"email": "Email already registered"})
        logger.info("User signed up", extra={"user_id": user_id})
        return self._open_session(UserProfile(id=user_id, name=display_name, email=email))

    def sign_in(self, email: str, password: str) -> Session:
        with collaborator_call("sign in"):
            doc = self.collection.find_one({"email": email})
        if not doc or doc.get("password_hash") != hash_password(password):
            raise AuthError("Invalid credentials")
        return self._open_session(_profile(doc))

    def get_current_user(self, token: Optional[str] = None) -> Optional[UserProfile]:
        """Resolve the user for ``token``, or for the signed-in session."""
        if token is None:
            if self.session is None:
                return None
            token = self.session.token
        payload = decode_token(token)
        oid = to_object_id(payload.get("id"))
        if oid is None:
            raise AuthError("Invalid token payload")
        with collaborator_call("get current user"):
            doc = self.collection.find_one({"_id": oid})
        if not doc:
            raise AuthError("User not found")
        return _profile(doc)

    def sign_out(self) -> None:
        self.session = None

    def ensure_admin(self, email: str, password: str, display_name: str = "Admin") -> bool:
        """Create an admin account unless one exists; True when created."""
        with collaborator_call("ensure admin"):
            if self.collection.count_documents({"is_admin": True}) > 0:
                return False
            admin = User(name=display_name, email=email, password_hash=hash_password(password), is_admin=True)
            create_document(self.collection_name, admin, database=self.connected)
        return True
