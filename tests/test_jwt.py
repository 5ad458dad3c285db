"""Access token round trip and middleware behaviour."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from chantier.services.jwt_service import ALGORITHM, decode_access_token, generate_access_token


def test_round_trip(app):
    with app.test_request_context():
        payload = decode_access_token(generate_access_token(7, "BUREAU"))
    assert payload["sub"] == "7"
    assert payload["role"] == "BUREAU"
    assert payload["type"] == "access"


def test_wrong_type_rejected(app):
    token = jwt.encode(
        {"sub": "1", "type": "refresh", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        app.config["JWT_SECRET_KEY"], algorithm=ALGORITHM,
    )
    with app.test_request_context(), pytest.raises(jwt.InvalidTokenError):
        decode_access_token(token)


def test_expired_token_is_401(client, app, admin):
    token = jwt.encode(
        {"sub": str(admin.id), "type": "access",
         "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        app.config["JWT_SECRET_KEY"], algorithm=ALGORITHM,
    )
    res = client.get("/api/v1/projects", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_foreign_signature_is_401(client, admin):
    token = jwt.encode({"sub": str(admin.id), "type": "access"},
                       "another-secret-that-is-long-enough-123", algorithm=ALGORITHM)
    res = client.get("/api/v1/projects", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401
