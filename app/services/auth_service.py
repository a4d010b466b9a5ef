"""
Authentication Service

Handles JWT-based authentication for dashboard staff (HR and admin users).
Credentials live server side in the Supabase users table as bcrypt hashes.
"""

from typing import Optional, Dict, Any
from datetime import timedelta
import uuid

import jwt
import bcrypt

from app.config import Config
from app.db.supabase import get_supabase
from app.utils.logger import get_logger
from app.utils.exceptions import PortalError
from app.utils.datetime_utils import get_now_ist

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"


class AuthService:
    """Service for managing staff authentication and JWT tokens"""

    def __init__(self, config: Config, client=None):
        self.config = config
        self._client = client
        self.table_name = config.supabase.users_table
        self.jwt_secret = config.auth.jwt_secret
        if not self.jwt_secret or not self.jwt_secret.strip():
            raise ValueError("JWT_SECRET_KEY must be set in environment.")

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def is_staff_role(self, role: Optional[str]) -> bool:
        return (role or "").lower() in self.config.auth.staff_roles

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except Exception as e:
            logger.error(f"[AuthService] Password verification error: {str(e)}")
            return False

    def generate_token(self, user_id: str, role: str, email: Optional[str] = None) -> str:
        now = get_now_ist()
        payload = {
            "user_id": user_id,
            "role": role,
            "exp": now + timedelta(hours=self.config.auth.jwt_expiration_hours),
            "iat": now,
        }
        if email:
            payload["email"] = email
        return jwt.encode(payload, self.jwt_secret, algorithm=JWT_ALGORITHM)

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            return jwt.decode(token, self.jwt_secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.warning("[AuthService] Token has expired")
            return None
        except jwt.InvalidTokenError:
            return None

    def _public_user(self, user: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": user.get("id"),
            "email": user.get("email"),
            "name": user.get("name"),
            "role": (user.get("role") or "").lower(),
        }

    def authenticate_staff(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        """Return the public user dict when email/password match a staff account."""
        email = (email or "").strip().lower()
        try:
            response = self.client.table(self.table_name).select("*").eq("email", email).execute()
        except Exception as e:
            logger.error(f"[AuthService] Authentication error: {str(e)}", exc_info=True)
            return None

        if not response.data:
            logger.warning(f"[AuthService] User not found: {email}")
            return None

        user = response.data[0]
        if not self.is_staff_role(user.get("role")):
            logger.warning(f"[AuthService] Non-staff login refused: {email}")
            return None

        password_hash = user.get("password_hash")
        if not password_hash or not self.verify_password(password, password_hash):
            logger.warning(f"[AuthService] ❌ Invalid password for: {email}")
            return None

        logger.info(f"[AuthService] ✅ {user.get('role')} authenticated: {email}")
        return self._public_user(user)

    def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            uuid.UUID(str(user_id))
        except ValueError:
            return None
        try:
            response = self.client.table(self.table_name).select("*").eq("id", user_id).execute()
        except Exception as e:
            logger.error(f"[AuthService] Error fetching user: {str(e)}", exc_info=True)
            return None
        if not response.data:
            return None
        return self._public_user(response.data[0])

    def create_staff_user(self, email: str, password: str, name: str, role: str = "hr") -> Dict[str, Any]:
        """Create (or re-key) a staff account. Used by the seeding script."""
        role = role.lower()
        if not self.is_staff_role(role):
            raise PortalError(f"Role '{role}' is not a staff role", "auth")
        email = email.strip().lower()
        now = get_now_ist().isoformat()
        password_hash = self.hash_password(password)
        try:
            existing = self.client.table(self.table_name).select("id").eq("email", email).execute()
            if existing.data:
                self.client.table(self.table_name).update({
                    "password_hash": password_hash,
                    "role": role,
                    "name": name,
                    "updated_at": now,
                }).eq("email", email).execute()
                logger.info(f"[AuthService] Updated staff user: {email}")
                user_id = existing.data[0]["id"]
            else:
                user_id = str(uuid.uuid4())
                self.client.table(self.table_name).insert({
                    "id": user_id,
                    "email": email,
                    "name": name,
                    "role": role,
                    "password_hash": password_hash,
                    "created_at": now,
                    "updated_at": now,
                }).execute()
                logger.info(f"[AuthService] ✅ Created staff user: {email}")
        except Exception as e:
            logger.error(f"[AuthService] Failed to create staff user: {str(e)}", exc_info=True)
            raise PortalError(f"Failed to create staff user: {str(e)}", "auth")
        return {"id": user_id, "email": email, "name": name, "role": role}
