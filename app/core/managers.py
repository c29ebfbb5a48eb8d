"""
Custom QuerySet and Manager classes for soft-deletable models.

Usage:
    from core.managers import SoftDeleteManager, SoftDeleteQuerySet

    class Message(SoftDeleteMixin, BaseModel):
        objects = SoftDeleteManager()  # Default: excludes deleted
        all_objects = SoftDeleteQuerySet.as_manager()  # Includes deleted

    Message.objects.all()       # Only visible messages
    Message.all_objects.all()   # Everything, e.g. for moderation
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class SoftDeleteQuerySet(models.QuerySet):
    """
    QuerySet whose delete() soft deletes.

    Bulk deletes (including the admin's delete action) keep the rows. The
    default filtering of deleted records happens in SoftDeleteManager, not
    here, so all_objects can share this queryset unfiltered.
    """

    def delete(self) -> tuple[int, dict[str, int]]:
        """Soft delete all objects in the queryset."""
        count = self.filter(is_deleted=False).update(
            is_deleted=True,
            deleted_at=timezone.now(),
        )
        return count, {self.model._meta.label: count}


class SoftDeleteManager(models.Manager.from_queryset(SoftDeleteQuerySet)):
    """Default manager that hides soft-deleted rows."""

    def get_queryset(self) -> SoftDeleteQuerySet:
        return super().get_queryset().filter(is_deleted=False)
