"""Pydantic data models shared across the gateway."""
