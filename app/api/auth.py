"""Pharmacist authentication endpoints and utilities."""
from fastapi import APIRouter, Request, Response, HTTPException
from pydantic import BaseModel
from typing import Optional
import secrets
import hashlib
from datetime import timedelta

from app.db.models import utcnow

router = APIRouter()

SESSION_COOKIE = "session_token"

# In-memory session storage; sessions do not survive a restart
_sessions: dict[str, dict] = {}


class LoginRequest(BaseModel):
    """Login request model."""
    pharmacist_id: str
    password: str


class SessionInfo(BaseModel):
    """Session information response."""
    authenticated: bool
    pharmacist_id: Optional[str] = None
    expires_at: Optional[str] = None


def create_session_token() -> str:
    """Generate a secure session token."""
    return secrets.token_urlsafe(32)


def hash_password(password: str) -> str:
    """Hash password for comparison."""
    return hashlib.sha256(password.encode()).hexdigest()


def create_session(response: Response, pharmacist_id: str, ttl_hours: int) -> str:
    """Create a new pharmacist session and set cookie."""
    session_token = create_session_token()
    now = utcnow()

    _sessions[session_token] = {
        "pharmacist_id": pharmacist_id,
        "expires_at": now + timedelta(hours=ttl_hours),
        "created_at": now,
    }

    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_token,
        httponly=True,
        max_age=ttl_hours * 3600,
        samesite="lax",
    )

    return session_token


def get_session_token(request: Request) -> Optional[str]:
    """Extract session token from cookie."""
    return request.cookies.get(SESSION_COOKIE)


def get_session_pharmacist(session_token: Optional[str]) -> Optional[str]:
    """Get the pharmacist of a valid, unexpired session."""
    if not session_token:
        return None

    session = _sessions.get(session_token)
    if not session:
        return None

    if utcnow() > session["expires_at"]:
        del _sessions[session_token]
        return None

    return session["pharmacist_id"]


async def require_pharmacist(request: Request) -> str:
    """Dependency requiring a pharmacist session; returns the pharmacist id."""
    pharmacist_id = get_session_pharmacist(get_session_token(request))
    if pharmacist_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return pharmacist_id


@router.post("/auth/login")
async def login(login_req: LoginRequest, request: Request, response: Response):
    """Login endpoint."""
    settings = request.app.state.settings
    if not login_req.pharmacist_id.strip():
        raise HTTPException(status_code=401, detail="Pharmacist id is required")
    if not secrets.compare_digest(
        hash_password(login_req.password), hash_password(settings.pharmacist_password)
    ):
        raise HTTPException(status_code=401, detail="Invalid password")

    session_token = create_session(
        response, login_req.pharmacist_id.strip(), settings.session_ttl_hours
    )

    return {
        "success": True,
        "message": "Login successful",
        "pharmacist_id": _sessions[session_token]["pharmacist_id"],
        "expires_at": _sessions[session_token]["expires_at"].isoformat(),
    }


@router.post("/auth/logout")
async def logout(request: Request, response: Response):
    """Logout endpoint."""
    session_token = get_session_token(request)
    if session_token and session_token in _sessions:
        del _sessions[session_token]

    response.delete_cookie(SESSION_COOKIE)

    return {"success": True, "message": "Logged out"}


@router.get("/auth/session")
async def get_session_info(request: Request) -> SessionInfo:
    """Get current session information."""
    session_token = get_session_token(request)
    pharmacist_id = get_session_pharmacist(session_token)

    if pharmacist_id is not None:
        return SessionInfo(
            authenticated=True,
            pharmacist_id=pharmacist_id,
            expires_at=_sessions[session_token]["expires_at"].isoformat(),
        )

    return SessionInfo(authenticated=False)
