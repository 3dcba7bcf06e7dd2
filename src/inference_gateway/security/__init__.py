"""Credential encryption, access grants and the security audit trail."""

from inference_gateway.security.service import SecurityService

__all__ = ["SecurityService"]
