import logging

import pytest

from app.auth import authenticate, parse_owner_tokens, verify_cron_secret
from errors import Unauthorized


def test_parse_owner_tokens_skips_malformed_entries(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="app.auth")

    token_map = parse_owner_tokens(" tok-a:owner-a , broken-entry, tok-b : owner-b, :nobody, tok-c:")

    assert token_map == {"tok-a": "owner-a", "tok-b": "owner-b"}
    assert any("position 1" in record.getMessage() for record in caplog.records)


def test_parse_owner_tokens_empty() -> None:
    assert parse_owner_tokens("") == {}
    assert parse_owner_tokens("   ") == {}


def test_authenticate_resolves_owner() -> None:
    assert authenticate("tok-b", {"tok-a": "owner-a", "tok-b": "owner-b"}) == "owner-b"


@pytest.mark.parametrize("token", [None, "", "tok-z"])
def test_authenticate_rejects_missing_or_unknown(token) -> None:
    with pytest.raises(Unauthorized):
        authenticate(token, {"tok-a": "owner-a"})


def test_unauthorized_is_a_permission_error() -> None:
    with pytest.raises(PermissionError):
        authenticate(None, {})


def test_verify_cron_secret() -> None:
    assert verify_cron_secret("s3cret", "s3cret") is True
    assert verify_cron_secret("wrong", "s3cret") is False
    assert verify_cron_secret(None, "s3cret") is False
    assert verify_cron_secret("anything", None) is False
