import logging
from typing import Optional

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import get_settings

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "token"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # stored hash is not a bcrypt hash
        return False


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.auth_secret, salt="auth-token")


def generate_token(user_id: int, email: str) -> str:
    return _serializer().dumps({"id": user_id, "email": email})


def verify_token(token: str) -> Optional[dict]:
    settings = get_settings()
    try:
        data = _serializer().loads(token, max_age=settings.token_max_age_secs)
    except SignatureExpired:
        logger.info("auth token expired")
        return None
    except BadSignature:
        logger.warning("auth token with bad signature rejected")
        return None

    if not isinstance(data, dict) or not isinstance(data.get("id"), int):
        return None
    return data


def token_from_headers(
    authorization: Optional[str], cookie_token: Optional[str]
) -> Optional[str]:
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    if cookie_token:
        return cookie_token
    return None
