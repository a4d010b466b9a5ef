"""
Session Context and Dashboard Shell

``SessionContext`` is the single owner of who is signed in. It is created
explicitly, restored once at startup from persisted storage and changed only
through ``sign_in`` / ``sign_out``. ``DashboardShell`` reads it to decide
whether a dashboard route may render.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import jwt

from app.utils.exceptions import PortalError
from app.utils.logger import get_logger

from app.client.notifications import Notifier
from app.client.storage import LocalStorage

logger = get_logger(__name__)

SESSION_KEY = "app_user"
# Older builds stored a bare boolean flag; it carries no credentials.
LEGACY_SESSION_KEY = "hr_auth"

LOGIN_ROUTE = "/login"
PUBLIC_ROUTES = ("/", LOGIN_ROUTE, "/candidate-form")
DASHBOARD_ROUTES = (
    "/dashboard",
    "/dashboard/candidates",
    "/dashboard/departments",
    "/dashboard/pending",
    "/dashboard/verified",
    "/dashboard/settings",
)

NAV_ITEMS = [
    {"title": "Dashboard", "path": "/dashboard"},
    {"title": "All Candidates", "path": "/dashboard/candidates"},
    {"title": "Departments", "path": "/dashboard/departments"},
    {"title": "Pending Review", "path": "/dashboard/pending"},
    {"title": "Verified", "path": "/dashboard/verified"},
    {"title": "Settings", "path": "/dashboard/settings"},
]


class SessionContext:
    """Signed-in staff user, their token and the persisted copy of both"""

    def __init__(
        self,
        client,
        storage: LocalStorage,
        staff_roles: Optional[List[str]] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.client = client
        self.storage = storage
        self.staff_roles = [r.lower() for r in (staff_roles or ["hr", "admin"])]
        self.notifier = notifier or Notifier()
        self.user: Optional[Dict[str, Any]] = None
        self.token: Optional[str] = None

    @staticmethod
    def _token_expired(token: str) -> bool:
        # Signature is checked by the backend; only expiry matters here.
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return True
        exp = claims.get("exp")
        return exp is not None and exp <= time.time()

    def _clear(self) -> None:
        self.user = None
        self.token = None
        self.client.set_token(None)

    def restore(self) -> bool:
        """Load the persisted session, dropping it if unreadable or expired."""
        if self.storage.get_item(LEGACY_SESSION_KEY) is not None:
            logger.info("[Session] Removing legacy session flag")
            self.storage.remove_item(LEGACY_SESSION_KEY)

        raw = self.storage.get_item(SESSION_KEY)
        if not raw:
            return False
        try:
            data = json.loads(raw)
            token = data["token"]
            user = data["user"]
            if not isinstance(token, str) or not isinstance(user, dict):
                raise ValueError("malformed session")
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"[Session] Discarding unreadable session: {e}")
            self.storage.remove_item(SESSION_KEY)
            return False

        if self._token_expired(token):
            logger.info("[Session] Persisted session expired")
            self.storage.remove_item(SESSION_KEY)
            return False

        self.user = user
        self.token = token
        self.client.set_token(token)
        logger.debug(f"[Session] Restored session for {user.get('email')}")
        return True

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """Check credentials with the backend and persist the session."""
        try:
            result = await self.client.login(email.strip().lower(), password)
        except PortalError as e:
            logger.warning(f"[Session] Sign-in failed for {email}: {e}")
            self.notifier.error("Login failed", e.message)
            raise

        user = result["user"]
        if (user.get("role") or "").lower() not in self.staff_roles:
            self.notifier.error("Login failed", "Staff access required")
            raise PortalError("Staff access required", "Session")

        self.user = user
        self.token = result["token"]
        self.client.set_token(self.token)
        try:
            self.storage.set_item(SESSION_KEY, json.dumps({"token": self.token, "user": self.user}))
        except OSError as e:
            # Signed in for this run; the next start will ask for credentials again.
            logger.warning(f"[Session] Could not persist session: {e}")
        logger.info(f"[Session] Signed in as {user.get('email')} ({user.get('role')})")
        self.notifier.success("Welcome back", user.get("name") or user.get("email") or "")
        return user

    def sign_out(self) -> None:
        self._clear()
        try:
            self.storage.remove_item(SESSION_KEY)
            self.storage.remove_item(LEGACY_SESSION_KEY)
        except OSError as e:
            logger.error(f"[Session] Could not clear persisted session: {e}")
        logger.info("[Session] Signed out")

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.token is not None

    @property
    def is_staff(self) -> bool:
        return self.is_authenticated and (self.user.get("role") or "").lower() in self.staff_roles


@dataclass
class RouteDecision:
    allowed: bool
    redirect: Optional[str] = None
    not_found: bool = False


class DashboardShell:
    """Route gate plus navigation for the staff dashboard"""

    def __init__(self, session: SessionContext):
        self.session = session

    @staticmethod
    def _normalize(path: str) -> str:
        path = path.split("?", 1)[0].split("#", 1)[0]
        if len(path) > 1:
            path = path.rstrip("/")
        return path or "/"

    def guard(self, path: str) -> RouteDecision:
        path = self._normalize(path)
        if path in PUBLIC_ROUTES:
            if path == LOGIN_ROUTE and self.session.is_staff:
                return RouteDecision(allowed=False, redirect="/dashboard")
            return RouteDecision(allowed=True)
        if path in DASHBOARD_ROUTES:
            if self.session.is_staff:
                return RouteDecision(allowed=True)
            return RouteDecision(allowed=False, redirect=LOGIN_ROUTE)
        return RouteDecision(allowed=False, not_found=True)

    def nav_items(self, current: Optional[str] = None) -> List[Dict[str, Any]]:
        if not self.session.is_staff:
            return []
        current = self._normalize(current) if current else None
        return [dict(item, active=item["path"] == current) for item in NAV_ITEMS]
