"""
Create demo users for testing and demos.

This script creates the two hardcoded demo accounts used by the mobile client:
- Asker:    123e4567-e89b-12d3-a456-426614174002 (balance 500.00)
- Answerer: 123e4567-e89b-12d3-a456-426614174003 (balance 0.00)
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from datetime import datetime, timezone
from uuid import UUID

from repositories.client import get_supabase


DEMO_USERS = [
    (UUID("123e4567-e89b-12d3-a456-426614174002"), "demo_asker", "500.00"),
    (UUID("123e4567-e89b-12d3-a456-426614174003"), "demo_answerer", "0.00"),
]


def create_demo_users():
    """Create the demo profiles if they do not exist yet."""

    supabase = get_supabase()
    now = datetime.now(timezone.utc).isoformat()

    for user_id, username, balance in DEMO_USERS:
        existing = supabase.table("profiles").select("*").eq("id", str(user_id)).execute()

        if existing.data:
            print(f"Demo user already exists: {username} ({user_id})")
            print(f"  Balance: {existing.data[0].get('balance')}")
            continue

        result = supabase.table("profiles").insert({
            "id": str(user_id),
            "username": username,
            "balance": balance,
            "created_at_utc": now,
        }).execute()

        if result.data:
            print(f"[SUCCESS] Demo user created: {username}")
            print(f"  User ID: {user_id}")
            print(f"  Balance: {balance}")
        else:
            print(f"[ERROR] Failed to create demo user {username}")
            print(f"  Error: {result}")


if __name__ == "__main__":
    create_demo_users()
