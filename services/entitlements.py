"""
Premium entitlement lookup.

Entitlements are data, not code: rows in user_entitlements written by the
billing side, plus an optional JSON file of user IDs granted a promotional
plan (PROMO_ENTITLEMENTS_FILE). Nothing is hardcoded here.
"""

import os
import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import FrozenSet

from sqlalchemy.orm import Session

from database import crud

log = logging.getLogger(__name__)

PROMO_ENTITLEMENTS_FILE = os.getenv("PROMO_ENTITLEMENTS_FILE")


def _aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


@lru_cache(maxsize=1)
def promo_user_ids(path: str = None) -> FrozenSet[str]:
    """User IDs listed in the promotional entitlement file (empty when unset)."""
    path = path or PROMO_ENTITLEMENTS_FILE
    if not path:
        return frozenset()
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        log.error("Could not read promo entitlements from %s: %s", path, e)
        return frozenset()
    if not isinstance(data, list):
        log.error("Promo entitlements file %s must hold a JSON list of user IDs", path)
        return frozenset()
    return frozenset(str(x) for x in data)


def has_premium(db: Session, user_id: str, now: datetime = None) -> bool:
    """True when the user holds an active premium entitlement."""
    if str(user_id) in promo_user_ids():
        return True
    now = now or datetime.now(timezone.utc)
    for ent in crud.get_entitlements(db, user_id):
        if ent.starts_at is not None and _aware(ent.starts_at) > now:
            continue
        if ent.expires_at is None or _aware(ent.expires_at) > now:
            return True
    return False


def can_access(db: Session, user_id: str, access: str) -> bool:
    """Free definitions are open to everyone."""
    if (access or "free") == "free":
        return True
    return has_premium(db, user_id)
