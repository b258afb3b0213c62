# app/core/supabase_client.py
import logging

from supabase import AsyncClient, acreate_client

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


async def create_supabase_client(settings: Settings | None = None) -> AsyncClient:
    """
    Create the async Supabase client used for the order feed and writes.

    Uses the service role key when it is configured so status writes are
    not subject to RLS; otherwise falls back to the anon key.

    WARNING:
      - Never expose service role key to frontend.
      - Only backend should call this.
    """
    settings = settings or get_settings()

    key = settings.SUPABASE_SERVICE_ROLE_KEY
    if not key:
        logger.warning("SUPABASE_SERVICE_ROLE_KEY not set; status writes go through RLS")
        key = settings.SUPABASE_KEY

    return await acreate_client(settings.SUPABASE_URL, key)
