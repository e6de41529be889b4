"""
Adapters layer - External integrations (Supabase REST and auth).
"""

from .memory_backend import InMemoryBackend
from .query import Filter, RowBackend
from .supabase_authenticator import SupabaseAuthenticator
from .supabase_client import SupabaseClient

__all__ = ["Filter", "RowBackend", "InMemoryBackend", "SupabaseAuthenticator", "SupabaseClient"]
