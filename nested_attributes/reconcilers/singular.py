"""
Reconciler for singular relations (BelongsTo / HasOne).
"""

import logging
from typing import Any, Mapping

from ..context import NestedSaveContext, ReconcileOutcome
from ..relations.bound import BoundRelation
from ..relations.kinds import RelationKind
from .base import Reconciler

logger = logging.getLogger(__name__)


class SingularReconciler(Reconciler):
    """
    Updates, deletes or creates the single row behind a relation.

    A BelongsTo relation keeps its foreign key on the root, so creating its
    target means pointing the root at the new row and persisting the root a
    second time. The outcome reports that with ``root_resaved``.
    """

    kinds = (RelationKind.BELONGS_TO, RelationKind.HAS_ONE)
    name = "singular"

    def reconcile(
        self,
        ctx: NestedSaveContext,
        key: str,
        relation: BoundRelation,
        payload: Mapping[str, Any],
    ) -> ReconcileOutcome:
        outcome = self.outcome(key, relation)
        attributes = ctx.destroy_policy.strip(payload)

        current = relation.first() if ctx.root_exists else None
        if current is not None:
            if ctx.destroy_policy.should_destroy(payload):
                pk = current.pk
                ctx.storage.delete(current)
                outcome.deleted.append(pk)
                return outcome
            ctx.storage.update(current, attributes)
            outcome.updated.append(current.pk)
            return outcome

        related = relation.create(attributes)
        outcome.created.append(related.pk)

        if relation.kind is RelationKind.BELONGS_TO:
            relation.associate(related)
            ctx.persist_root()
            outcome.root_resaved = True
            logger.debug(
                "Associated %s(pk=%s) on %s.%s and persisted the root again",
                relation.related_model.__name__,
                related.pk,
                type(ctx.root).__name__,
                relation.descriptor.accessor,
            )
        return outcome
