import uuid

import jwt
import pytest

from firmflow.core.config import settings
from firmflow.core.security import create_session_token, decode_session_token


def test_round_trip_claims():
    user_id, org_id = uuid.uuid4(), uuid.uuid4()
    token = create_session_token(user_id, org_id, "team_member", 3)

    payload = decode_session_token(token)
    assert payload["sub"] == str(user_id)
    assert payload["org_id"] == str(org_id)
    assert payload["role"] == "team_member"
    assert payload["token_version"] == 3


def test_previous_secret_still_accepted(monkeypatch):
    token = create_session_token(uuid.uuid4(), uuid.uuid4(), "admin", 1)

    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", settings.JWT_SECRET)
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret")

    assert decode_session_token(token)["role"] == "admin"


def test_unknown_secret_rejected(monkeypatch):
    token = create_session_token(uuid.uuid4(), uuid.uuid4(), "admin", 1)
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret")
    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", "")

    with pytest.raises(jwt.InvalidTokenError):
        decode_session_token(token)
