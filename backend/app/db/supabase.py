"""
Supabase Client
===============
Configured Supabase client for the durable side of SafeTrack: saved
blood-pressure / heart-rate measurements and bearer-token verification.

Uses the service_role key because the backend writes measurements on
behalf of the authenticated user. Live device telemetry does not live
here; see app.db.live_data.
"""

from functools import lru_cache

from supabase import Client, create_client

from app.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_service_key)
