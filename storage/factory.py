from __future__ import annotations

import os
from typing import Union

from dotenv import load_dotenv

from storage.memory_store import InMemoryStore
from storage.supabase_store import SupabaseStore
from telemetry.logging_utils import get_logger

logger = get_logger(__name__)

Store = Union[SupabaseStore, InMemoryStore]

_TRUTHY = {"1", "true", "yes", "on"}


def demo_mode_enabled() -> bool:
    return (os.getenv("CAMPUS_DEMO_MODE") or "").strip().lower() in _TRUTHY


def create_store() -> Store:
    """Build the store described by the environment (``.env`` is loaded first)."""
    load_dotenv()
    if demo_mode_enabled():
        logger.info("store_selected", extra={"store": "memory"})
        return InMemoryStore.from_seed_file()
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_ANON_KEY")
    if not url or not key:
        raise RuntimeError(
            "Supabase is required. Set SUPABASE_URL and SUPABASE_ANON_KEY in .env, or CAMPUS_DEMO_MODE=1."
        )
    logger.info("store_selected", extra={"store": "supabase"})
    return SupabaseStore(url, key)
