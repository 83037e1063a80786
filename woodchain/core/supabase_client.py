# woodchain/core/supabase_client.py
from functools import lru_cache
from supabase import create_client, Client

from woodchain.core.config import get_settings


@lru_cache
def supabase_public() -> Client:
    """
    Create a Supabase client with the anon/public key.

    Use cases:
      - auth.sign_up for new marketplace accounts
      - auth.sign_in_with_password for login

    Passwords never touch our database; Supabase Auth hashes and stores
    them. The access token it returns is what `core.auth` verifies.
    """
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
