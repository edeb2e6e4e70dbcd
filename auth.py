"""
Bearer-token identity for the API.

Tokens are HS256 JWTs signed with JWT_SECRET and carrying a `userId` claim.
They are issued elsewhere; this module only verifies them.
"""
import logging
import os
from typing import Any, Dict, Optional

import jwt
from bson import ObjectId
from fastapi import Header

from database import get_db
from errors import AuthError, ForbiddenError

logger = logging.getLogger(__name__)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):].strip() or None


def verify_credential(token: str) -> ObjectId:
    """Return the user id a token was issued for, or raise AuthError."""
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise AuthError("Token verification is not configured")
    try:
        claims = jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.PyJWTError as exc:
        raise AuthError("Invalid token") from exc
    user_id = claims.get("userId")
    if not isinstance(user_id, str) or not ObjectId.is_valid(user_id):
        raise AuthError("Invalid token")
    return ObjectId(user_id)


def load_user(user_id: ObjectId) -> Optional[Dict[str, Any]]:
    return get_db()["users"].find_one({"_id": user_id}, {"password": 0})


def optional_user(authorization: Optional[str] = Header(None)) -> Optional[Dict[str, Any]]:
    """
    Purchaser for checkout. No token or a bad token means a guest checkout,
    never an error. A valid token for a user without a profile record still
    attributes the order to that id.
    """
    token = bearer_token(authorization)
    if token is None:
        return None
    try:
        user_id = verify_credential(token)
    except AuthError as exc:
        logger.info("%s, proceeding as guest", exc.message)
        return None
    return load_user(user_id) or {"_id": user_id}


def require_user(authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    token = bearer_token(authorization)
    if token is None:
        raise AuthError("No token provided")
    user_id = verify_credential(token)
    user = load_user(user_id)
    if user is None:
        raise AuthError("User not found")
    return user


def require_admin(authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    user = require_user(authorization)
    if not user.get("isAdmin"):
        raise ForbiddenError()
    return user
