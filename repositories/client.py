"""
Supabase client initialization.

This module contains *only* the database connection setup and exposes
`get_supabase()` for the Supabase-backed repositories.

Environment variables required when the Supabase backend is used:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)

The client is created on first use so the in-memory backend and the test suite
can import the repositories without credentials.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from supabase import Client, create_client  # type: ignore[import-not-found]

# Look for .env in the project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_client: Optional[Client] = None
_client_lock = threading.Lock()


def get_supabase() -> Client:
    """Return the shared Supabase client, creating it on first call."""

    global _client

    with _client_lock:
        if _client is None:
            url = os.getenv("SUPABASE_URL")
            key = os.getenv("SUPABASE_KEY")

            if not url:
                raise RuntimeError(
                    "Missing environment variable: SUPABASE_URL. "
                    "Set SUPABASE_URL to your Supabase project URL."
                )
            if not key:
                raise RuntimeError(
                    "Missing environment variable: SUPABASE_KEY. "
                    "Set SUPABASE_KEY to your Supabase API key."
                )

            _client = create_client(url, key)

    return _client


__all__ = ["get_supabase"]
