"""
Persistence strategies, one per relation cardinality.

- SingularReconciler: BelongsTo / HasOne
- PluralReconciler: HasMany (reverse foreign keys, generic relations)
- ManyToManyReconciler: BelongsToMany with pivot sync
"""

from .base import Reconciler
from .many_to_many import ManyToManyReconciler
from .plural import PluralReconciler
from .singular import SingularReconciler

DEFAULT_RECONCILERS = (SingularReconciler, PluralReconciler, ManyToManyReconciler)


def build_dispatch_table(reconcilers=DEFAULT_RECONCILERS) -> dict:
    """Map every relation kind to the reconciler instance handling it."""
    table = {}
    for reconciler_class in reconcilers:
        reconciler = reconciler_class()
        for kind in reconciler.kinds:
            table[kind] = reconciler
    return table


__all__ = [
    "DEFAULT_RECONCILERS",
    "ManyToManyReconciler",
    "PluralReconciler",
    "Reconciler",
    "SingularReconciler",
    "build_dispatch_table",
]
