from supabase import Client, create_client
from supabase.client import ClientOptions

from config.config import settings


def create_supabase_client() -> Client:
    """Anon-key client reserved for Supabase Auth calls.

    Signing in stores the session on the client and rewrites its PostgREST
    Authorization header, so no table query may go through this client.
    """
    return create_client(
        settings.supabase_url,
        settings.supabase_key,
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )


def create_supabase_admin_client() -> Client:
    """Service-role client for table queries and storage signing.

    Row-level security does not apply; every repository method filters by
    owner or is called after the service has checked ownership.
    """
    return create_client(settings.supabase_url, settings.storage_admin_key())
