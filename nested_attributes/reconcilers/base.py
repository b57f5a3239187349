"""
Base class for relation reconcilers.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Iterable

from ..context import NestedSaveContext, ReconcileOutcome
from ..relations.bound import BoundRelation
from ..relations.kinds import RelationKind


class Reconciler(ABC):
    """
    Converts a nested payload into create/update/delete calls for one
    relation cardinality.

    Attributes:
        kinds: Relation kinds this reconciler handles
        name: Identifier used in logs

    Example:
        class MyReconciler(Reconciler):
            kinds = (RelationKind.HAS_ONE,)
            name = "my_reconciler"

            def reconcile(self, ctx, key, relation, payload):
                outcome = self.outcome(key, relation)
                ...
                return outcome
    """

    kinds: ClassVar[Iterable[RelationKind]] = ()
    name: ClassVar[str] = "base"

    @abstractmethod
    def reconcile(
        self,
        ctx: NestedSaveContext,
        key: str,
        relation: BoundRelation,
        payload: Any,
    ) -> ReconcileOutcome:
        """
        Apply ``payload`` to ``relation``.

        Raises:
            PersistenceFailure: When a storage write fails.
            EntityNotFound: When a payload references a missing row.
        """

    def outcome(self, key: str, relation: BoundRelation) -> ReconcileOutcome:
        return ReconcileOutcome(key=key, kind=relation.kind)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.name}>"
