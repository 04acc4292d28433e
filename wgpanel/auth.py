"""
Admin authentication module.
Single admin account configured from the environment, bcrypt password check.
Signed, time-limited tokens accepted as a Bearer header or session cookie.
"""
import hmac
import logging
from functools import lru_cache
from typing import Optional

import bcrypt
from fastapi import APIRouter, Request, HTTPException, Depends
from fastapi.responses import JSONResponse
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from pydantic import BaseModel

from .config import SESSION_SECRET_KEY, SESSION_MAX_AGE, ADMIN_USERNAME, ADMIN_PASSWORD, ADMIN_PASSWORD_HASH
from .audit import log_admin_login
from .limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter()

SESSION_COOKIE_NAME = "admin_session"
serializer = URLSafeTimedSerializer(SESSION_SECRET_KEY, salt="wgpanel-session")


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        return False


@lru_cache(maxsize=1)
def admin_password_hash() -> str:
    if ADMIN_PASSWORD_HASH:
        return ADMIN_PASSWORD_HASH
    return hash_password(ADMIN_PASSWORD)


def check_credentials(username: str, password: str) -> bool:
    user_ok = hmac.compare_digest(username.encode(), ADMIN_USERNAME.encode())
    # always run bcrypt so a wrong username costs the same as a wrong password
    password_ok = verify_password(password, admin_password_hash())
    return user_ok and password_ok


def create_session_token(username: str) -> str:
    return serializer.dumps({"username": username, "role": "admin"})


def read_session_token(token: str) -> dict:
    """Decode a token. Raises BadSignature (or its subclass SignatureExpired)."""
    return serializer.loads(token, max_age=SESSION_MAX_AGE)


def _request_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE_NAME)


def require_auth(request: Request) -> Optional[str]:
    """Username of the logged-in admin, or None. For pages that redirect instead of failing."""
    token = _request_token(request)
    if not token:
        return None
    try:
        return read_session_token(token)["username"]
    except (BadSignature, KeyError, TypeError):
        return None


async def get_current_admin(request: Request) -> str:
    """Dependency to get current admin from the Bearer token or session cookie."""
    token = _request_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Access token required")

    try:
        payload = read_session_token(token)
        return payload["username"]
    except (BadSignature, SignatureExpired, KeyError, TypeError):
        raise HTTPException(status_code=403, detail="Invalid or expired token")


def client_ip(request: Request) -> str:
    """Real client IP (handle Nginx proxy)."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post("/login")
@limiter.limit("5/minute")
async def login(request: Request, body: LoginRequest):
    """Exchange admin credentials for a session token."""
    if not body.username or not body.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    ip = client_ip(request)
    if not check_credentials(body.username, body.password):
        log_admin_login(body.username, success=False, ip=ip)
        logger.warning("Failed admin login for %r from %s", body.username, ip)
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = create_session_token(body.username)
    log_admin_login(body.username, success=True, ip=ip)

    response = JSONResponse({"success": True, "token": token, "message": "Login successful"})
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https"
    )
    return response


@router.get("/verify")
async def verify(admin: str = Depends(get_current_admin)):
    """Check that the presented token is still valid."""
    return {"success": True, "user": {"username": admin, "role": "admin"}, "message": "Token is valid"}


@router.post("/logout")
async def logout():
    """Clear the session cookie. Bearer tokens are dropped by the client."""
    response = JSONResponse({"success": True, "message": "Logged out successfully"})
    response.delete_cookie(SESSION_COOKIE_NAME)
    return response
