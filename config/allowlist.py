"""
allowlist.py - Admin identity configuration

Parses ADMIN_IDS from environment and provides helpers to check
whether a session belongs to an admin.
"""

from __future__ import annotations

import os
import re
from typing import Iterable, Set

from dotenv import load_dotenv

load_dotenv()


def _normalize_identifier(value: str) -> str:
    return value.strip().lower()


def _split_allowlist(raw_value: str) -> Set[str]:
    entries = re.split(r"[,\n]+", raw_value)
    return {_normalize_identifier(entry) for entry in entries if entry and entry.strip()}


def parse_admin_ids(env_value: str | None) -> Set[str]:
    if not env_value:
        return set()
    return _split_allowlist(env_value)


ADMIN_IDS = parse_admin_ids(os.getenv("ADMIN_IDS"))


def is_admin(session_id: str | None, admin_ids: Iterable[str] | None = None) -> bool:
    """Return True if the session id is a configured admin.

    Unlike a sender allowlist, an empty admin list grants nobody access.
    """
    if not session_id:
        return False
    ids = ADMIN_IDS if admin_ids is None else {_normalize_identifier(str(i)) for i in admin_ids}
    return _normalize_identifier(str(session_id)) in ids
