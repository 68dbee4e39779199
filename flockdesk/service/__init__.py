"""Flockdesk remote content service access."""

from .client import ContentServiceClient, GATE_STATUSES

__all__ = ["ContentServiceClient", "GATE_STATUSES"]
