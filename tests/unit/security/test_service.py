"""
Unit tests for SecurityService: credential vault, key rotation, access grants.
"""

import pytest
from cryptography.fernet import Fernet

from inference_gateway.llm.exceptions import AccessDeniedError, AuthenticationError
from inference_gateway.security.service import SecurityService


@pytest.fixture
def security():
    return SecurityService(encryption_keys=[Fernet.generate_key().decode()])


def test_encrypt_decrypt_round_trip(security):
    token = security.encrypt_credential("sk-secret")

    assert token != "sk-secret"
    assert security.decrypt_credential(token) == "sk-secret"


def test_foreign_token_is_authentication_error(security):
    other = SecurityService(encryption_keys=[Fernet.generate_key().decode()])

    with pytest.raises(AuthenticationError):
        security.decrypt_credential(other.encrypt_credential("sk-secret"))


def test_ephemeral_key_when_none_configured():
    service = SecurityService()

    assert service.decrypt_credential(service.encrypt_credential("x")) == "x"


def test_store_and_get_credential_audits_hash_only(security):
    security.store_credential("openai", "sk-secret", stored_by="admin")

    assert security.get_credential("openai") == "sk-secret"
    assert security.get_credential("gemini") is None
    event = security.query_audit_logs(action=SecurityService.API_KEY_STORED)[0]
    assert event.details == {"key_hash": SecurityService.hash_credential("sk-secret")}
    assert "sk-secret" not in event.model_dump_json()


def test_rotate_credential(security):
    security.store_credential("openai", "sk-old")

    event = security.rotate_credential("openai", "sk-new", rotated_by="admin", reason="leak")

    assert security.get_credential("openai") == "sk-new"
    assert event.details["old_key_hash"] == SecurityService.hash_credential("sk-old")
    assert event.details["new_key_hash"] == SecurityService.hash_credential("sk-new")
    assert event.details["reason"] == "leak"


def test_rotate_encryption_key_keeps_credentials_readable(security):
    security.store_credential("openai", "sk-a")
    security.store_credential("deepseek", "sk-b")
    new_key = Fernet.generate_key().decode()

    count = security.rotate_encryption_key(new_key)

    assert count == 2
    assert security.get_credential("openai") == "sk-a"
    # re-encrypted under the new primary key
    token = security._credentials["deepseek"]
    assert Fernet(new_key.encode()).decrypt(token.encode()) == b"sk-b"


def test_access_is_deny_by_default(security):
    assert security.check_access("alice", "openai:gpt-4") is False


@pytest.mark.parametrize("grant", ["openai:gpt-4", "openai:*", "*"])
def test_grant_forms(security, grant):
    security.grant_access("alice", grant)

    assert security.check_access("alice", "openai:gpt-4") is True
    assert security.check_access("bob", "openai:gpt-4") is False


def test_backend_wildcard_does_not_cross_backends(security):
    security.grant_access("alice", "ollama:*")

    assert security.check_access("alice", "ollama:qwen2.5:7b") is True
    assert security.check_access("alice", "openai:gpt-4") is False


def test_revoke_access(security):
    security.grant_access("alice", "openai:gpt-4")
    security.revoke_access("alice", "openai:gpt-4")
    security.revoke_access("nobody", "openai:gpt-4")

    assert security.check_access("alice", "openai:gpt-4") is False


def test_enforce_access_raises_and_audits(security):
    with pytest.raises(AccessDeniedError) as exc_info:
        security.enforce_access("mallory", "openai:gpt-4")

    assert exc_info.value.retryable is False
    assert exc_info.value.backend == "openai"
    attempts = security.query_audit_logs(user_id="mallory")
    assert [e.action for e in attempts] == [SecurityService.UNAUTHORIZED_ACCESS_ATTEMPT]


def test_audit_statistics_and_bound():
    service = SecurityService(audit_log_size=2)
    for user in ("a", "b", "c"):
        service.grant_access(user, "*")

    assert service.audit_statistics() == {SecurityService.ACCESS_GRANTED: 2}
    assert [e.user_id for e in service.query_audit_logs()] == ["c", "b"]
    assert len(service.query_audit_logs(limit=1)) == 1
