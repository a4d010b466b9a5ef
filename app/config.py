"""
Configuration Management

Centralized configuration management using environment variables
with proper validation and type safety.
"""

import os
from typing import List, Optional
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


# Load environment variables from .env in the project root (resolve to absolute path)
_project_root = Path(__file__).resolve().parent.parent
_env_path = _project_root / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=str(_env_path))
# Also load from current working directory so "python backend_server.py" picks up .env
load_dotenv()


DEFAULT_DEPARTMENTS = ["HR", "Tech", "Finance", "Marketing", "Operations"]


@dataclass
class SupabaseConfig:
    """Supabase (hosted Postgres + Storage) configuration"""
    url: str
    service_key: str
    applications_table: str = "applications"
    users_table: str = "users"
    documents_bucket: str = "candidate-documents"


@dataclass
class AuthConfig:
    """JWT configuration for staff sessions"""
    jwt_secret: str
    jwt_expiration_hours: int = 24
    # Roles allowed into the dashboard. Flat lookup, no hierarchy.
    staff_roles: List[str] = field(default_factory=lambda: ["hr", "admin"])


@dataclass
class PortalConfig:
    """Registration form limits"""
    departments: List[str] = field(default_factory=lambda: list(DEFAULT_DEPARTMENTS))
    max_file_size: int = 5 * 1024 * 1024  # 5MB
    submit_rate_limit: str = "10/minute"
    login_rate_limit: str = "15/minute"


@dataclass
class ClientConfig:
    """Portal client configuration"""
    api_base_url: str = "http://localhost:8000/api"
    storage_path: str = ".portal_storage.json"
    request_timeout: float = 30.0


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str
    port: int
    frontend_url: str = ""


@dataclass
class Config:
    """Main application configuration"""

    supabase: SupabaseConfig
    auth: AuthConfig
    server: ServerConfig
    portal: PortalConfig
    client: ClientConfig

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create configuration from environment variables.

        Returns:
            Configured Config instance

        Raises:
            ValueError: If required environment variables are missing
        """
        supabase_url = os.getenv("SUPABASE_URL")
        supabase_key = os.getenv("SUPABASE_SERVICE_KEY")
        if not supabase_url:
            raise ValueError("SUPABASE_URL environment variable is required")
        if not supabase_key:
            raise ValueError("SUPABASE_SERVICE_KEY environment variable is required")

        jwt_secret = os.getenv("JWT_SECRET_KEY", "")
        if not jwt_secret.strip():
            raise ValueError(
                "JWT_SECRET_KEY must be set in environment. "
                "Generate a secret (e.g. openssl rand -hex 32) and set it in .env"
            )

        departments = [
            d.strip() for d in os.getenv("PORTAL_DEPARTMENTS", "").split(",") if d.strip()
        ] or list(DEFAULT_DEPARTMENTS)
        staff_roles = [
            r.strip().lower() for r in os.getenv("STAFF_ROLES", "hr,admin").split(",") if r.strip()
        ]

        return cls(
            supabase=SupabaseConfig(
                url=supabase_url,
                service_key=supabase_key,
                applications_table=os.getenv("SUPABASE_APPLICATIONS_TABLE", "applications"),
                users_table=os.getenv("SUPABASE_USERS_TABLE", "users"),
                documents_bucket=os.getenv("SUPABASE_DOCUMENTS_BUCKET", "candidate-documents"),
            ),
            auth=AuthConfig(
                jwt_secret=jwt_secret,
                jwt_expiration_hours=int(os.getenv("JWT_EXPIRATION_HOURS", "24")),
                staff_roles=staff_roles,
            ),
            server=ServerConfig(
                host=os.getenv("SERVER_HOST", "0.0.0.0"),
                port=int(os.getenv("SERVER_PORT", "8000")),
                frontend_url=os.getenv("FRONTEND_URL", ""),
            ),
            portal=PortalConfig(
                departments=departments,
                max_file_size=int(os.getenv("MAX_FILE_SIZE", str(5 * 1024 * 1024))),
                submit_rate_limit=os.getenv("SUBMIT_RATE_LIMIT", "10/minute"),
                login_rate_limit=os.getenv("LOGIN_RATE_LIMIT", "15/minute"),
            ),
            client=ClientConfig(
                api_base_url=os.getenv("PORTAL_API_BASE_URL", "http://localhost:8000/api"),
                storage_path=os.getenv("PORTAL_STORAGE_PATH", ".portal_storage.json"),
                request_timeout=float(os.getenv("PORTAL_REQUEST_TIMEOUT", "30")),
            ),
        )


def get_config() -> Config:
    """
    Get configuration from environment variables.

    Returns:
        Configuration instance
    """
    return Config.from_env()
