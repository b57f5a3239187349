"""
Reconciler for many-to-many relations.
"""

import logging
from typing import Any, Mapping, Optional, Sequence

from ..context import NestedSaveContext, ReconcileOutcome
from ..relations.bound import BoundRelation, PivotRecord
from ..relations.kinds import RelationKind
from ..utils.coercion import is_blank
from ..utils.normalization import keys_of
from .base import Reconciler

logger = logging.getLogger(__name__)


class ManyToManyReconciler(Reconciler):
    """
    Upserts every target row of a many-to-many payload, then syncs the pivot.

    Each payload is matched on the target key when it carries one, otherwise
    on its own attributes. Pivot data travels under the relation's pivot
    accessor and is written to the through model by the final sync, which
    detaches every row not named by the payload.
    """

    kinds = (RelationKind.BELONGS_TO_MANY,)
    name = "many_to_many"

    def reconcile(
        self,
        ctx: NestedSaveContext,
        key: str,
        relation: BoundRelation,
        payload: Sequence[Mapping[str, Any]],
    ) -> ReconcileOutcome:
        outcome = self.outcome(key, relation)
        records: list[PivotRecord] = []

        for params in payload:
            record = self.apply(ctx, relation, params, outcome)
            if record is not None:
                records.append(record)

        outcome.sync = relation.sync(records)
        return outcome

    def excluded_keys(self, ctx: NestedSaveContext, relation: BoundRelation) -> set[str]:
        """Payload keys that are never written as columns of the target model."""
        excluded = set(keys_of(getattr(relation.related_model, "nested_attributes", None)))
        excluded.add(relation.pivot_accessor)
        excluded.add(ctx.destroy_policy.destroy_key)
        return excluded

    def apply(
        self,
        ctx: NestedSaveContext,
        relation: BoundRelation,
        params: Mapping[str, Any],
        outcome: ReconcileOutcome,
    ) -> Optional[PivotRecord]:
        key_name = relation.key_name
        has_key = not is_blank(params.get(key_name))

        if ctx.root_exists and has_key and ctx.destroy_policy.should_destroy(params):
            target = ctx.storage.find_or_fail(
                relation.related_model._default_manager.all(),
                params[key_name],
                field_name=relation.descriptor.accessor,
            )
            pk = target.pk
            ctx.storage.delete(target)
            outcome.deleted.append(pk)
            return None

        excluded = self.excluded_keys(ctx, relation)
        match = {key_name: params[key_name]} if has_key else dict(params)
        match = {name: value for name, value in match.items() if name not in excluded}
        attributes = {name: value for name, value in params.items() if name not in excluded}

        target, created = ctx.storage.update_or_create(relation.related_model, match, attributes)
        (outcome.created if created else outcome.updated).append(target.pk)

        pivot = params.get(relation.pivot_accessor)
        if pivot and isinstance(pivot, Mapping):
            return (target.pk, dict(pivot))
        return (target.pk, None)
