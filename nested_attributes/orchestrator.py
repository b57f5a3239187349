"""
Nested save orchestration.

``NestedSaveOrchestrator.save`` runs one nested save:

1. resolve, classify and shape-check every nested key (no I/O yet);
2. open ``transaction.atomic`` on the target database;
3. persist the root instance;
4. dispatch each nested key, in payload order, to the reconciler for its
   relation kind;
5. commit, or roll back everything when the root save or any reconciler
   fails.

Configuration errors raise from step 1 and never reach the database.
Storage failures roll back and come back as a failed ``NestedSaveResult``
(or are re-raised when ``raise_on_failure`` is set).
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Type

from django.db import models, router, transaction

from .context import NestedSaveContext, ReconcileOutcome
from .exceptions import (
    InvalidNestedPayload,
    NestedPersistenceError,
    UnsupportedRelationKind,
)
from .policy import DestroyPolicy
from .reconcilers import build_dispatch_table
from .reconcilers.base import Reconciler
from .registry import NestedAttributeRegistry
from .relations.bound import BoundRelation
from .relations.kinds import RelationDescriptor, RelationKind
from .settings import NestedAttributesSettings
from .storage import DjangoStorage, filter_assignable, primary_key_names

logger = logging.getLogger(__name__)

# Instance attribute holding the nested attribute set captured by ``fill``.
PENDING_ATTRIBUTE = "_accept_nested_attributes_for"


@dataclass
class NestedSaveResult:
    """
    Outcome of a nested save.

    Attributes:
        ok: True when everything was committed
        instance: The root instance
        error: The failure that caused the rollback, if any
        root_persist_count: Number of times the root was persisted
        outcomes: Per nested key reconcile outcomes, in dispatch order
    """

    ok: bool
    instance: Optional[models.Model] = None
    error: Optional[Exception] = None
    root_persist_count: int = 0
    outcomes: list[ReconcileOutcome] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok

    def outcome_for(self, key: str) -> Optional[ReconcileOutcome]:
        for outcome in self.outcomes:
            if outcome.key == key:
                return outcome
        return None


def split_nested_attributes(
    declared_keys: Iterable[str],
    attributes: Optional[Mapping[str, Any]],
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Split raw input into plain attributes and the nested attribute set.

    Nested keys keep the order they have in ``attributes``.
    """
    declared = set(declared_keys)
    plain: dict[str, Any] = {}
    nested: dict[str, Any] = {}
    for key, value in (attributes or {}).items():
        if key in declared:
            nested[key] = value
        else:
            plain[key] = value
    return plain, nested


def _is_payload_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, Mapping))


def validate_payload_shape(
    model: Type[models.Model],
    key: str,
    descriptor: RelationDescriptor,
    payload: Any,
) -> None:
    """
    Check that ``payload`` has the shape its relation kind expects.

    Raises:
        InvalidNestedPayload: For a sequence on a singular relation, a
            mapping on a plural one, or a non-mapping item.
    """
    if descriptor.is_singular:
        if not isinstance(payload, Mapping):
            raise InvalidNestedPayload(
                f'Nested attribute "{key}" of {model.__name__} expects an object '
                f"({descriptor.kind.value}), got {type(payload).__name__}.",
                model_name=model.__name__,
                field_name=key,
                expected="mapping",
            )
        return

    if not _is_payload_sequence(payload):
        raise InvalidNestedPayload(
            f'Nested attribute "{key}" of {model.__name__} expects a list '
            f"({descriptor.kind.value}), got {type(payload).__name__}.",
            model_name=model.__name__,
            field_name=key,
            expected="sequence",
        )
    for index, item in enumerate(payload):
        if not isinstance(item, Mapping):
            raise InvalidNestedPayload(
                f'Item {index} of nested attribute "{key}" of {model.__name__} '
                f"must be an object, got {type(item).__name__}.",
                model_name=model.__name__,
                field_name=f"{key}.{index}",
                expected="mapping",
            )


class NestedSaveOrchestrator:
    """
    Saves a root instance together with its nested attribute payloads in a
    single transaction.
    """

    def __init__(
        self,
        registry: NestedAttributeRegistry,
        settings: Optional[NestedAttributesSettings] = None,
        reconcilers: Optional[dict[RelationKind, Reconciler]] = None,
    ):
        self.registry = registry
        self.settings = settings or registry.settings
        self.dispatch_table = reconcilers or build_dispatch_table()

    @classmethod
    def for_model(
        cls,
        model: Type[models.Model],
        settings: Optional[NestedAttributesSettings] = None,
    ) -> "NestedSaveOrchestrator":
        return cls(NestedAttributeRegistry.for_model(model), settings=settings)

    # ------------------------------------------------------------------ #
    # Planning
    # ------------------------------------------------------------------ #
    def plan(self, nested: Mapping[str, Any]) -> list[tuple[str, RelationDescriptor, Any]]:
        """
        Resolve every nested key before the transaction opens.

        Raises:
            UnknownRelationAccessor, UnsupportedRelationKind, InvalidNestedPayload
        """
        model = self.registry.model
        steps = []
        for key, payload in nested.items():
            descriptor = self.registry.descriptor(key)
            if descriptor.kind not in self.dispatch_table:
                raise UnsupportedRelationKind(
                    f'No reconciler handles "{key}" ({descriptor.kind.value}).',
                    model_name=model.__name__,
                    field_name=key,
                )
            validate_payload_shape(model, key, descriptor, payload)
            steps.append((key, descriptor, payload))
        return steps

    # ------------------------------------------------------------------ #
    # Saving
    # ------------------------------------------------------------------ #
    def save(
        self,
        root: models.Model,
        attributes: Optional[Mapping[str, Any]] = None,
        nested: Optional[Mapping[str, Any]] = None,
        **overrides: Any,
    ) -> NestedSaveResult:
        """
        Save ``root`` and apply its nested attributes atomically.

        Args:
            root: Instance of the registry's model; a nested set captured by
                ``fill`` is applied first and consumed
            attributes: Raw input; declared nested keys are taken out of it
                and the rest is assigned to the root's concrete fields
            nested: Nested attribute set to apply on top of ``attributes``
            **overrides: Setting overrides for this call only

        Returns:
            NestedSaveResult

        Raises:
            NestedConfigurationError: Before any database work.
            NestedPersistenceError: After rollback, with ``raise_on_failure``.
        """
        settings = self.settings.with_overrides(**overrides) if overrides else self.settings
        plain, from_attributes = split_nested_attributes(self.registry.keys, attributes)
        nested_set = dict(root.__dict__.get(PENDING_ATTRIBUTE) or {})
        nested_set.update(from_attributes)
        if nested:
            nested_set.update(nested)

        steps = self.plan(nested_set)
        # Persisting the root must take the plain save path.
        root.__dict__.pop(PENDING_ATTRIBUTE, None)

        snapshot = _snapshot(root)
        for name, value in filter_assignable(
            type(root), plain, exclude=primary_key_names(type(root))
        ).items():
            setattr(root, name, value)

        using = settings.using or router.db_for_write(type(root), instance=root)
        ctx = NestedSaveContext(
            root=root,
            storage=DjangoStorage(using=using, full_clean=settings.full_clean),
            settings=settings,
            destroy_policy=DestroyPolicy(settings.destroy_key),
            root_created=root._state.adding,
        )
        outcomes: list[ReconcileOutcome] = []

        with transaction.atomic(using=using):
            try:
                ctx.persist_root()
                for key, descriptor, payload in steps:
                    relation = BoundRelation(root, descriptor, ctx.storage)
                    reconciler = self.dispatch_table[descriptor.kind]
                    logger.debug(
                        "Reconciling %s.%s with %r", type(root).__name__, key, reconciler
                    )
                    try:
                        outcomes.append(reconciler.reconcile(ctx, key, relation, payload))
                    except NestedPersistenceError as exc:
                        if exc.field_name is None:
                            exc.field_name = key
                        raise
            except NestedPersistenceError as exc:
                transaction.set_rollback(True, using=using)
                _restore(root, snapshot)
                logger.warning(
                    "Rolled back nested save of %s: %s", type(root).__name__, exc
                )
                if settings.raise_on_failure:
                    raise
                return NestedSaveResult(
                    ok=False,
                    instance=root,
                    error=exc,
                    root_persist_count=ctx.root_persist_count,
                    outcomes=outcomes,
                )
            except Exception:
                _restore(root, snapshot)
                raise

        logger.info(
            "Committed nested save of %s(pk=%s) with %s nested key(s)",
            type(root).__name__,
            root.pk,
            len(outcomes),
        )
        return NestedSaveResult(
            ok=True,
            instance=root,
            root_persist_count=ctx.root_persist_count,
            outcomes=outcomes,
        )


def _snapshot(instance: models.Model) -> dict[str, Any]:
    return {
        "values": {f.attname: getattr(instance, f.attname) for f in instance._meta.concrete_fields},
        "adding": instance._state.adding,
        "db": instance._state.db,
    }


def _restore(instance: models.Model, snapshot: dict[str, Any]) -> None:
    """Put the in-memory root back the way it was before the save."""
    for attname, value in snapshot["values"].items():
        setattr(instance, attname, value)
    instance._state.adding = snapshot["adding"]
    instance._state.db = snapshot["db"]
    for field in instance._meta.concrete_fields:
        if field.is_relation and field.is_cached(instance):
            field.delete_cached_value(instance)


def save_nested(
    root: models.Model,
    declared_keys: Iterable[Any],
    attributes: Optional[Mapping[str, Any]] = None,
    **overrides: Any,
) -> NestedSaveResult:
    """
    Save ``root`` with the nested attributes named by ``declared_keys``.

    ``declared_keys`` is a list of keys or a ``key -> options`` mapping, as
    accepted by ``NestedAttributeRegistry.from_declaration``.
    """
    registry = NestedAttributeRegistry.from_declaration(type(root), declared_keys)
    return NestedSaveOrchestrator(registry).save(root, attributes, **overrides)
