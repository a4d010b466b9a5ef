from typing import Optional

from supabase import create_client, Client

from app.config import get_config
from app.utils.logger import get_logger

logger = get_logger(__name__)

_client: Optional[Client] = None


def get_supabase() -> Client:
    """Return the shared Supabase client, creating it on first use."""
    global _client
    if _client is None:
        config = get_config()
        _client = create_client(config.supabase.url, config.supabase.service_key)
        logger.info("[Supabase] Client initialised")
    return _client


def set_supabase(client: Optional[Client]) -> None:
    """Replace the shared client (None resets to lazy creation)."""
    global _client
    _client = client
