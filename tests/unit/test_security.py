"""Unit tests for access tokens."""

from __future__ import annotations

from datetime import timedelta

import pytest

from linguachat.core import security
from linguachat.core.exceptions import AuthenticationRequiredError
from tests.conftest import ALICE_ID


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(security.settings, "jwt_secret_key", "test-secret")


class TestAccessTokens:
    def test_round_trip(self) -> None:
        token = security.create_access_token(ALICE_ID)
        assert security.decode_access_token(token) == ALICE_ID

    def test_expired_token_rejected(self) -> None:
        token = security.create_access_token(ALICE_ID, expires_delta=timedelta(seconds=-5))
        with pytest.raises(AuthenticationRequiredError):
            security.decode_access_token(token)

    def test_wrong_signature_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        token = security.create_access_token(ALICE_ID)
        monkeypatch.setattr(security.settings, "jwt_secret_key", "another-secret")
        with pytest.raises(AuthenticationRequiredError):
            security.decode_access_token(token)

    def test_garbage_rejected(self) -> None:
        with pytest.raises(AuthenticationRequiredError) as exc_info:
            security.decode_access_token("not-a-token")
        assert exc_info.value.status_code == 401
