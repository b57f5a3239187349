"""
NestedSaveContext - Carries state through one nested save.

The context is created by the orchestrator once the transaction is open and
handed to every reconciler. It gives reconcilers explicit access to the
transaction's database alias and storage primitives, and is the only way a
reconciler may persist the root instance again.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, TYPE_CHECKING

from .policy import DestroyPolicy
from .relations.kinds import RelationKind
from .settings import NestedAttributesSettings
from .storage import DjangoStorage

if TYPE_CHECKING:
    from django.db import models


@dataclass
class ReconcileOutcome:
    """
    What a reconciler did for one nested key.

    Attributes:
        key: Nested attribute key from the payload
        kind: Relation kind the key resolved to
        created: Primary keys of rows created
        updated: Primary keys of rows updated
        deleted: Primary keys of rows deleted through the destroy flag
        pruned: Number of rows removed by the prune phase
        root_resaved: True when the root instance was persisted again
        sync: Pivot changes reported by a many-to-many sync
    """

    key: str
    kind: RelationKind
    created: list[Any] = field(default_factory=list)
    updated: list[Any] = field(default_factory=list)
    deleted: list[Any] = field(default_factory=list)
    pruned: int = 0
    root_resaved: bool = False
    sync: Optional[dict[str, list[Any]]] = None


@dataclass
class NestedSaveContext:
    """
    Carries state through one nested save.

    Attributes:
        root: The root model instance being saved
        storage: Storage primitives bound to the transaction's alias
        settings: Effective nested attribute settings
        destroy_policy: Destroy flag policy for this save
        root_created: True when this save inserted the root row
        root_persist_count: How many times the root has been persisted
    """

    root: "models.Model"
    storage: DjangoStorage
    settings: NestedAttributesSettings
    destroy_policy: DestroyPolicy
    root_created: bool = False
    root_persist_count: int = 0

    @property
    def root_exists(self) -> bool:
        """True once the root row is stored."""
        return self.root.pk is not None and not self.root._state.adding

    def persist_root(self) -> None:
        """Persist the root instance and count it."""
        self.storage.persist(self.root, operation="update" if self.root_exists else "create")
        self.root_persist_count += 1
