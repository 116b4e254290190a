"""Services for the group blueprint."""

from .group_service import GroupService

__all__ = ["GroupService"]
