"""
Nested attribute declarations.

A ``NestedAttributeRegistry`` lists the payload keys a model accepts as
nested attributes and maps each of them to a relation accessor. Keys are
resolved and classified once, before any save opens a transaction, so a
misdeclared key fails fast instead of half way through a save.

Usage:
    registry = (
        NestedAttributeRegistry(Order)
        .accept("line_items")
        .accept("labels", accessor="tags", pivot_accessor="meta")
    )
    registry.resolve()  # {"line_items": RelationDescriptor(...), ...}
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Type

from django.core.signals import setting_changed
from django.db import models
from django.dispatch import receiver

from .exceptions import NestedConfigurationError, UnknownRelationAccessor
from .relations.classifier import classify_field, get_relation_field
from .relations.kinds import RelationDescriptor
from .settings import NestedAttributesSettings
from .utils.normalization import normalize_accessor, normalize_key_list

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NestedAttributeDeclaration:
    """One accepted nested key."""

    key: str
    accessor: Optional[str] = None
    pivot_accessor: Optional[str] = None


class NestedAttributeRegistry:
    """Accepted nested keys of one model and the relations they resolve to."""

    _cache: dict[Type[models.Model], "NestedAttributeRegistry"] = {}
    _cache_lock = threading.Lock()

    def __init__(
        self,
        model: Type[models.Model],
        settings: Optional[NestedAttributesSettings] = None,
    ):
        self.model = model
        self.settings = settings or NestedAttributesSettings.from_django()
        self._declarations: dict[str, NestedAttributeDeclaration] = {}
        self._resolved: Optional[dict[str, RelationDescriptor]] = None

    def __repr__(self) -> str:
        return f"<NestedAttributeRegistry {self.model.__name__}: {list(self._declarations)}>"

    def __contains__(self, key: str) -> bool:
        return key in self._declarations

    # ------------------------------------------------------------------ #
    # Building
    # ------------------------------------------------------------------ #
    def accept(
        self,
        key: str,
        accessor: Optional[str] = None,
        pivot_accessor: Optional[str] = None,
    ) -> "NestedAttributeRegistry":
        """Accept ``key`` as a nested attribute and return the registry."""
        key = normalize_accessor(key)
        if not key:
            raise NestedConfigurationError(
                f"Empty nested attribute key declared on {self.model.__name__}.",
                model_name=self.model.__name__,
            )
        self._declarations[key] = NestedAttributeDeclaration(
            key=key,
            accessor=normalize_accessor(accessor) if accessor else None,
            pivot_accessor=pivot_accessor,
        )
        self._resolved = None
        return self

    @property
    def keys(self) -> list[str]:
        return list(self._declarations)

    @property
    def declarations(self) -> list[NestedAttributeDeclaration]:
        return list(self._declarations.values())

    # ------------------------------------------------------------------ #
    # Resolution
    # ------------------------------------------------------------------ #
    def resolve_accessor(self, key: str) -> str:
        """
        Return the relation accessor for ``key``.

        An explicit accessor wins. Otherwise the key itself is tried, then
        its snake_case form when camelCase keys are accepted.

        Raises:
            UnknownRelationAccessor: If no relation answers to the key.
        """
        declaration = self._declarations.get(key)
        if declaration is not None and declaration.accessor:
            get_relation_field(self.model, declaration.accessor)
            return declaration.accessor

        candidates = [key]
        if self.settings.coerce_camel_case:
            snake = normalize_accessor(key, snake_case=True)
            if snake != key:
                candidates.append(snake)

        for candidate in candidates:
            try:
                get_relation_field(self.model, candidate)
            except UnknownRelationAccessor:
                continue
            return candidate

        raise UnknownRelationAccessor(
            f'The nested attribute relation "{key}" does not exist on {self.model.__name__}.',
            model_name=self.model.__name__,
            field_name=key,
        )

    def descriptor(self, key: str) -> RelationDescriptor:
        resolved = self.resolve()
        if key not in resolved:
            raise UnknownRelationAccessor(
                f'"{key}" is not an accepted nested attribute of {self.model.__name__}.',
                model_name=self.model.__name__,
                field_name=key,
            )
        return resolved[key]

    def resolve(self) -> dict[str, RelationDescriptor]:
        """
        Resolve and classify every accepted key, in declaration order.

        Raises:
            UnknownRelationAccessor: For a key with no relation.
            UnsupportedRelationKind: For a key bound to an unsupported field.
        """
        if self._resolved is not None:
            return self._resolved

        resolved: dict[str, RelationDescriptor] = {}
        for key, declaration in self._declarations.items():
            accessor = self.resolve_accessor(key)
            field = get_relation_field(self.model, accessor)
            resolved[key] = classify_field(
                self.model,
                accessor,
                field,
                pivot_accessor=declaration.pivot_accessor or self.settings.pivot_accessor,
            )
        self._resolved = resolved
        logger.debug(
            "Resolved nested attributes of %s: %s",
            self.model.__name__,
            {key: descriptor.kind.value for key, descriptor in resolved.items()},
        )
        return resolved

    # ------------------------------------------------------------------ #
    # Model declarations
    # ------------------------------------------------------------------ #
    @classmethod
    def from_declaration(
        cls,
        model: Type[models.Model],
        declaration: Any,
        settings: Optional[NestedAttributesSettings] = None,
    ) -> "NestedAttributeRegistry":
        """Build a registry from a list of keys or a ``key -> options`` mapping."""
        registry = cls(model, settings=settings)
        for key, options in normalize_key_list(declaration).items():
            if isinstance(options, Mapping):
                registry.accept(
                    key,
                    accessor=options.get("accessor"),
                    pivot_accessor=options.get("pivot_accessor"),
                )
            else:
                registry.accept(key, accessor=options)
        return registry

    @classmethod
    def for_model(cls, model: Type[models.Model]) -> "NestedAttributeRegistry":
        """Return the cached registry built from ``model.nested_attributes``."""
        with cls._cache_lock:
            registry = cls._cache.get(model)
            if registry is None:
                registry = cls.from_declaration(
                    model, getattr(model, "nested_attributes", None)
                )
                cls._cache[model] = registry
            return registry

    @classmethod
    def clear_cache(cls) -> None:
        with cls._cache_lock:
            cls._cache.clear()


@receiver(setting_changed)
def clear_registry_cache(sender, setting, **kwargs):
    """Cached registries hold the settings read at first use."""
    if setting == "NESTED_ATTRIBUTES":
        NestedAttributeRegistry.clear_cache()
