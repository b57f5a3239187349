"""
Reconciler for one-to-many relations (reverse foreign keys and generic relations).
"""

import logging
from typing import Any, Mapping, Sequence

from django.core.exceptions import ValidationError

from ..context import NestedSaveContext, ReconcileOutcome
from ..exceptions import EntityNotFound
from ..relations.bound import BoundRelation
from ..relations.kinds import RelationKind
from ..utils.coercion import coerce_pk, is_blank
from .base import Reconciler

logger = logging.getLogger(__name__)


class PluralReconciler(Reconciler):
    """
    Diffs a collection of related rows against the incoming payloads.

    Phase 1 prunes the rows whose key is not carried by any payload (or the
    whole collection when no payload carries a key). Phase 2 updates,
    deletes or creates one row per payload. Pruning always comes first so a
    stale row cannot collide with a new one on a unique constraint.
    """

    kinds = (RelationKind.HAS_MANY,)
    name = "plural"

    def reconcile(
        self,
        ctx: NestedSaveContext,
        key: str,
        relation: BoundRelation,
        payload: Sequence[Mapping[str, Any]],
    ) -> ReconcileOutcome:
        outcome = self.outcome(key, relation)
        outcome.pruned = self.prune(ctx, relation, payload)
        for params in payload:
            self.apply(ctx, relation, params, outcome)
        return outcome

    def ids_to_keep(self, relation: BoundRelation, payload: Sequence[Mapping[str, Any]]) -> list[Any]:
        """
        Return the keys carried by ``payload``, cast to the related pk type.

        Raises:
            EntityNotFound: For a key that cannot be a primary key value.
        """
        key_name = relation.key_name
        pk_field = relation.related_model._meta.pk
        keep = []
        for params in payload:
            value = params.get(key_name)
            if is_blank(value):
                continue
            try:
                keep.append(pk_field.to_python(coerce_pk(value)))
            except (ValidationError, ValueError, TypeError) as exc:
                raise EntityNotFound(
                    f"{relation.related_model.__name__} with id '{value}' does not exist.",
                    model_name=relation.related_model.__name__,
                    field_name=relation.descriptor.accessor,
                    key=value,
                ) from exc
        return keep

    def prune(
        self,
        ctx: NestedSaveContext,
        relation: BoundRelation,
        payload: Sequence[Mapping[str, Any]],
    ) -> int:
        if ctx.root_created:
            return 0
        keep = self.ids_to_keep(relation, payload)
        queryset = relation.queryset()
        if keep:
            queryset = queryset.exclude(pk__in=keep)
        pruned = ctx.storage.delete_queryset(queryset)
        if pruned:
            logger.debug(
                "Pruned %s %s row(s) from %s.%s",
                pruned,
                relation.related_model.__name__,
                type(ctx.root).__name__,
                relation.descriptor.accessor,
            )
        return pruned

    def apply(
        self,
        ctx: NestedSaveContext,
        relation: BoundRelation,
        params: Mapping[str, Any],
        outcome: ReconcileOutcome,
    ) -> None:
        key_name = relation.key_name
        attributes = ctx.destroy_policy.strip(params)

        if ctx.root_exists and not is_blank(params.get(key_name)):
            related = relation.find_or_fail(params[key_name])
            if ctx.destroy_policy.should_destroy(params):
                pk = related.pk
                ctx.storage.delete(related)
                outcome.deleted.append(pk)
                return
            ctx.storage.update(related, attributes)
            outcome.updated.append(related.pk)
            return

        related = relation.create(attributes)
        outcome.created.append(related.pk)
