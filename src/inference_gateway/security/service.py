"""
Security layer: credential encryption, key rotation, per-user model access
grants, and a bounded audit trail.

Credentials are encrypted with Fernet (AES-128-CBC + HMAC). Several keys can
be active at once through MultiFernet: the first key encrypts, all keys
decrypt, so rotating the encryption key never strands stored credentials.
"""

import hashlib
import threading
from collections import deque
from datetime import datetime
from typing import Optional

import structlog
from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from inference_gateway.llm.exceptions import AccessDeniedError, AuthenticationError
from inference_gateway.models.telemetry import SecurityAuditEvent


logger = structlog.get_logger(__name__)

WILDCARD = "*"


class SecurityService:
    """
    Credential vault and access control list.

    Access is deny-by-default: a user may use a model only when granted that
    exact ``backend:model`` key, a ``backend:*`` grant, or ``*``.
    """

    # Audit actions
    API_KEY_STORED = "API_KEY_STORED"
    API_KEY_ROTATED = "API_KEY_ROTATED"
    ENCRYPTION_KEY_ROTATED = "ENCRYPTION_KEY_ROTATED"
    ACCESS_GRANTED = "ACCESS_GRANTED"
    ACCESS_REVOKED = "ACCESS_REVOKED"
    UNAUTHORIZED_ACCESS_ATTEMPT = "UNAUTHORIZED_ACCESS_ATTEMPT"

    def __init__(self, encryption_keys: Optional[list[str]] = None, audit_log_size: int = 1000):
        """
        Args:
            encryption_keys: Fernet keys, newest first. When empty an ephemeral
                key is generated and anything encrypted with it is lost on restart.
            audit_log_size: Audit events retained in memory
        """
        keys = list(encryption_keys or [])
        if not keys:
            logger.warning("No encryption keys configured, using an ephemeral key")
            keys = [Fernet.generate_key().decode()]
        self._keys: list[Fernet] = [Fernet(k) for k in keys]
        self._fernet = MultiFernet(self._keys)
        self._credentials: dict[str, str] = {}
        self._grants: dict[str, set[str]] = {}
        self._audit: deque[SecurityAuditEvent] = deque(maxlen=audit_log_size)
        self._lock = threading.Lock()

    # === Credentials ===

    def encrypt_credential(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt_credential(self, token: str) -> str:
        """
        Raises:
            AuthenticationError: token was not produced by any active key
        """
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken as e:
            raise AuthenticationError("Stored credential cannot be decrypted") from e

    @staticmethod
    def hash_credential(plaintext: str) -> str:
        """sha256 hex digest, safe to log and compare."""
        return hashlib.sha256(plaintext.encode()).hexdigest()

    def store_credential(self, backend: str, plaintext: str, stored_by: Optional[str] = None) -> None:
        with self._lock:
            self._credentials[backend] = self.encrypt_credential(plaintext)
        self._log_event(
            self.API_KEY_STORED,
            resource=backend,
            user_id=stored_by,
            details={"key_hash": self.hash_credential(plaintext)},
        )

    def get_credential(self, backend: str) -> Optional[str]:
        token = self._credentials.get(backend)
        return self.decrypt_credential(token) if token else None

    def rotate_credential(
        self,
        backend: str,
        new_plaintext: str,
        rotated_by: Optional[str] = None,
        reason: str = "scheduled rotation",
    ) -> SecurityAuditEvent:
        """Replace a backend's credential and audit old/new key hashes."""
        old = self.get_credential(backend)
        with self._lock:
            self._credentials[backend] = self.encrypt_credential(new_plaintext)
        event = self._log_event(
            self.API_KEY_ROTATED,
            resource=backend,
            user_id=rotated_by,
            details={
                "old_key_hash": self.hash_credential(old) if old else None,
                "new_key_hash": self.hash_credential(new_plaintext),
                "reason": reason,
            },
        )
        logger.info("Credential rotated", backend=backend, rotated_by=rotated_by, reason=reason)
        return event

    def rotate_encryption_key(self, new_key: str, rotated_by: Optional[str] = None) -> int:
        """
        Make ``new_key`` the primary key and re-encrypt every stored credential.

        Old keys stay active for decryption. Returns the number of
        credentials re-encrypted.
        """
        with self._lock:
            self._keys.insert(0, Fernet(new_key))
            self._fernet = MultiFernet(self._keys)
            for backend, token in self._credentials.items():
                self._credentials[backend] = self._fernet.rotate(token.encode()).decode()
            count = len(self._credentials)
        self._log_event(
            self.ENCRYPTION_KEY_ROTATED,
            resource="credentials",
            user_id=rotated_by,
            details={"reencrypted": count, "active_keys": len(self._keys)},
        )
        return count

    # === Access control ===

    def grant_access(self, user_id: str, model_key: str, granted_by: Optional[str] = None) -> None:
        with self._lock:
            self._grants.setdefault(user_id, set()).add(model_key)
        self._log_event(
            self.ACCESS_GRANTED,
            resource=model_key,
            user_id=user_id,
            details={"granted_by": granted_by},
        )
        logger.info("User access granted", user_id=user_id, model=model_key)

    def revoke_access(self, user_id: str, model_key: str, revoked_by: Optional[str] = None) -> None:
        with self._lock:
            self._grants.get(user_id, set()).discard(model_key)
        self._log_event(
            self.ACCESS_REVOKED,
            resource=model_key,
            user_id=user_id,
            details={"revoked_by": revoked_by},
        )
        logger.info("User access revoked", user_id=user_id, model=model_key)

    def check_access(self, user_id: str, model_key: str) -> bool:
        grants = self._grants.get(user_id)
        if not grants:
            return False
        backend = model_key.partition(":")[0]
        return bool({model_key, f"{backend}:{WILDCARD}", WILDCARD} & grants)

    def enforce_access(self, user_id: str, model_key: str) -> None:
        """
        Raises:
            AccessDeniedError: user holds no matching grant (the attempt is audited)
        """
        if self.check_access(user_id, model_key):
            return
        self._log_event(
            self.UNAUTHORIZED_ACCESS_ATTEMPT,
            resource=model_key,
            user_id=user_id,
        )
        logger.warning("Unauthorized access attempt", user_id=user_id, model=model_key)
        backend, _, model = model_key.partition(":")
        raise AccessDeniedError(
            f"User {user_id} does not have access to model {model_key}",
            backend=backend,
            model=model,
        )

    # === Audit ===

    def _log_event(
        self,
        action: str,
        resource: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> SecurityAuditEvent:
        event = SecurityAuditEvent(
            action=action,
            resource=resource,
            user_id=user_id,
            details=details or {},
        )
        with self._lock:
            self._audit.append(event)
        return event

    def query_audit_logs(
        self,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> list[SecurityAuditEvent]:
        """Newest first."""
        with self._lock:
            events = list(self._audit)
        matched = [
            e for e in reversed(events)
            if (user_id is None or e.user_id == user_id)
            and (action is None or e.action == action)
            and (start is None or e.timestamp >= start)
            and (end is None or e.timestamp <= end)
        ]
        return matched[:limit]

    def audit_statistics(self) -> dict[str, int]:
        """Event count per action."""
        counts: dict[str, int] = {}
        with self._lock:
            for event in self._audit:
                counts[event.action] = counts.get(event.action, 0) + 1
        return counts
