"""
Mixins shared by HMS apps.

Provides common functionality for:
- Audit timestamps and actor ids on models
- Actor stamping and permission-scoped querysets on ViewSets
"""

from django.db import models
import logging

from .permissions import get_queryset_for_permission

logger = logging.getLogger(__name__)


class TimestampMixin(models.Model):
    """Adds created_at / updated_at to a model."""
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class ActorViewSetMixin:
    """
    ViewSet mixin for actor stamping.

    Filters list querysets by the scope of the view permission and passes
    the JWT user id to serializers as created_by_id.
    """
    owner_field = 'created_by_id'

    def get_queryset(self):
        queryset = super().get_queryset()
        if getattr(self, 'action', None) == 'list':
            view_permission = getattr(self, 'permission_mapping', {}).get('list')
            if view_permission:
                queryset = get_queryset_for_permission(
                    queryset, self.request, view_permission, self.owner_field
                )
        return queryset

    def get_actor_id(self):
        return getattr(self.request, 'user_id', None)

    def perform_create(self, serializer):
        save_kwargs = {}
        if hasattr(serializer.Meta.model, self.owner_field):
            save_kwargs[self.owner_field] = self.get_actor_id()
            logger.debug(f"Stamping {self.owner_field}={save_kwargs[self.owner_field]}")
        serializer.save(**save_kwargs)
