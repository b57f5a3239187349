"""
Relation handles bound to a root instance.

A ``BoundRelation`` pairs a ``RelationDescriptor`` with the root instance
being saved and exposes the handful of relation level operations the
reconcilers need: reading the current related row(s), creating a row linked
to the root, associating a BelongsTo target and syncing pivot rows.
"""

import logging
from typing import Any, Iterable, Optional, Tuple

from django.db import models

from ..storage import DjangoStorage, filter_assignable
from .kinds import RelationDescriptor, RelationKind

logger = logging.getLogger(__name__)

PivotRecord = Tuple[Any, Optional[dict[str, Any]]]


class BoundRelation:
    """A relation of ``root`` described by ``descriptor``."""

    def __init__(
        self,
        root: models.Model,
        descriptor: RelationDescriptor,
        storage: DjangoStorage,
    ):
        self.root = root
        self.descriptor = descriptor
        self.storage = storage

    def __repr__(self) -> str:
        return (
            f"<BoundRelation {type(self.root).__name__}.{self.descriptor.accessor} "
            f"({self.descriptor.kind.value})>"
        )

    @property
    def kind(self) -> RelationKind:
        return self.descriptor.kind

    @property
    def related_model(self) -> type[models.Model]:
        return self.descriptor.related_model

    @property
    def key_name(self) -> str:
        return self.descriptor.target_key_name

    @property
    def pivot_accessor(self) -> Optional[str]:
        return self.descriptor.pivot_accessor

    def _manager(self, model: type[models.Model]):
        return model._default_manager.using(self.storage.using)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def first(self) -> Optional[models.Model]:
        """Return the related row of a singular relation, if any."""
        if self.kind is RelationKind.BELONGS_TO:
            fk = self.root._meta.get_field(self.descriptor.remote_field_name)
            value = getattr(self.root, fk.attname)
            if value is None:
                return None
            return self._manager(self.related_model).filter(
                **{fk.target_field.attname: value}
            ).first()
        if self.root.pk is None:
            return None
        return self.queryset().first()

    def queryset(self) -> models.QuerySet:
        """Return the rows currently related to the root."""
        manager = self._manager(self.related_model)
        if self.kind is RelationKind.BELONGS_TO:
            fk = self.root._meta.get_field(self.descriptor.remote_field_name)
            return manager.filter(**{fk.target_field.attname: getattr(self.root, fk.attname)})
        if self.kind is RelationKind.BELONGS_TO_MANY:
            return manager.filter(pk__in=self.pivot_queryset().values(self._pivot_target_attname()))
        return manager.filter(**self.link_attributes())

    def find_or_fail(self, key: Any) -> models.Model:
        """Find a row by key within this relation."""
        return self.storage.find_or_fail(self.queryset(), key, field_name=self.descriptor.accessor)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #
    def link_attributes(self) -> dict[str, Any]:
        """Attributes that tie a new related row to the root."""
        descriptor = self.descriptor
        if descriptor.polymorphic:
            from django.contrib.contenttypes.models import ContentType

            content_type = ContentType.objects.db_manager(
                self.storage.using
            ).get_for_model(self.root, for_concrete_model=descriptor.for_concrete_model)
            return {
                descriptor.content_type_field_name: content_type,
                descriptor.object_id_field_name: self.root.pk,
            }
        if self.kind in (RelationKind.HAS_ONE, RelationKind.HAS_MANY):
            return {descriptor.remote_field_name: self.root}
        return {}

    def create(self, attributes: dict[str, Any]) -> models.Model:
        """Create a related row, linked to the root when the related side owns the key."""
        return self.storage.create(self.related_model, {**attributes, **self.link_attributes()})

    def associate(self, related: models.Model) -> None:
        """Point the root's foreign key at ``related`` (BelongsTo only)."""
        setattr(self.root, self.descriptor.remote_field_name, related)

    # ------------------------------------------------------------------ #
    # Pivot
    # ------------------------------------------------------------------ #
    def _pivot_source_attname(self) -> str:
        through = self.descriptor.through_model
        return through._meta.get_field(self.descriptor.pivot_source_field).attname

    def _pivot_target_attname(self) -> str:
        through = self.descriptor.through_model
        return through._meta.get_field(self.descriptor.pivot_target_field).attname

    def pivot_queryset(self) -> models.QuerySet:
        return self._manager(self.descriptor.through_model).filter(
            **{self._pivot_source_attname(): self.root.pk}
        )

    def sync(self, records: Iterable[PivotRecord]) -> dict[str, list[Any]]:
        """
        Make the pivot rows of the root match ``records`` exactly.

        ``records`` holds ``(pk, pivot_data)`` pairs; ``pivot_data`` is None
        for a bare association. Rows missing from ``records`` are detached,
        new ones are attached with their pivot data, and existing ones have
        their pivot data updated when it differs.

        Returns:
            ``{"attached": [...], "detached": [...], "updated": [...]}``
        """
        source = self._pivot_source_attname()
        target = self._pivot_target_attname()
        through = self.descriptor.through_model

        # Pivot data never overrides the two foreign keys of the through row.
        linked = {
            name
            for field_name in (self.descriptor.pivot_source_field, self.descriptor.pivot_target_field)
            for name in (field_name, through._meta.get_field(field_name).attname)
        }

        desired: dict[Any, Optional[dict[str, Any]]] = {}
        for pk, pivot in records:
            desired[pk] = filter_assignable(through, pivot, exclude=linked) if pivot else None

        existing = {getattr(row, target): row for row in self.pivot_queryset()}
        changes: dict[str, list[Any]] = {"attached": [], "detached": [], "updated": []}

        detach = [pk for pk in existing if pk not in desired]
        if detach:
            self.storage.delete_queryset(self.pivot_queryset().filter(**{f"{target}__in": detach}))
            changes["detached"] = detach

        for pk, pivot in desired.items():
            row = existing.get(pk)
            if row is None:
                self.storage.create(through, {**(pivot or {}), source: self.root.pk, target: pk})
                changes["attached"].append(pk)
                continue
            if pivot and any(getattr(row, name, None) != value for name, value in pivot.items()):
                self.storage.update(row, pivot)
                changes["updated"].append(pk)

        logger.debug(
            "Synced %s.%s: attached=%s detached=%s updated=%s",
            type(self.root).__name__,
            self.descriptor.accessor,
            changes["attached"],
            changes["detached"],
            changes["updated"],
        )
        return changes
