import json
from datetime import datetime, timedelta, timezone

import pytest

from database.models import UserEntitlement
from services import attempts, entitlements
from services.errors import ForbiddenError

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def grant(db, user_id, starts=None, expires=None, plan="monthly"):
    db.add(UserEntitlement(user_id=user_id, plan=plan, starts_at=starts, expires_at=expires))
    db.commit()


def test_free_access_needs_nothing(db):
    assert entitlements.can_access(db, "anyone", "free") is True
    assert entitlements.can_access(db, "anyone", None) is True
    assert entitlements.can_access(db, "anyone", "premium") is False


def test_active_entitlement_window(db):
    grant(db, "active", starts=NOW - timedelta(days=1), expires=NOW + timedelta(days=29))
    grant(db, "expired", expires=NOW - timedelta(seconds=1))
    grant(db, "future", starts=NOW + timedelta(days=1))
    grant(db, "forever", plan="promo")

    assert entitlements.has_premium(db, "active", now=NOW) is True
    assert entitlements.has_premium(db, "expired", now=NOW) is False
    assert entitlements.has_premium(db, "future", now=NOW) is False
    assert entitlements.has_premium(db, "forever", now=NOW) is True
    assert entitlements.has_premium(db, "nobody", now=NOW) is False


def test_promo_file(db, tmp_path, monkeypatch):
    path = tmp_path / "promo.json"
    path.write_text(json.dumps(["promo-user", 42]))
    monkeypatch.setattr(entitlements, "PROMO_ENTITLEMENTS_FILE", str(path))

    assert entitlements.has_premium(db, "promo-user") is True
    assert entitlements.has_premium(db, "42") is True
    assert entitlements.has_premium(db, "someone-else") is False


def test_unreadable_promo_file_grants_nothing(tmp_path):
    path = tmp_path / "promo.json"
    path.write_text('{"not": "a list"}')
    assert entitlements.promo_user_ids(str(path)) == frozenset()
    assert entitlements.promo_user_ids(str(tmp_path / "missing.json")) == frozenset()


def test_premium_exam_requires_entitlement(db, catalog):
    exam_id = catalog["premium-mock"]
    with pytest.raises(ForbiddenError):
        attempts.start_attempt(db, "user-1", exam_id)

    grant(db, "user-1", expires=datetime.now(timezone.utc) + timedelta(days=7))
    attempt, outcome = attempts.start_attempt(db, "user-1", exam_id)
    assert outcome == attempts.CREATED
    assert len(attempt.question_ids) == 4
