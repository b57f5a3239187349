"""
GraphQL mutations saving a model with its nested attributes.

Usage:
    SaveOrder = build_nested_save_mutation(Order)

    class Mutation(graphene.ObjectType):
        save_order = SaveOrder.Field()

    mutation {
      saveOrder(input: "{\\"reference\\": \\"A-1\\", \\"line_items\\": [...]}") {
        ok
        objectId
        errors { field message code }
      }
    }
"""

import logging
from typing import Any, Optional, Type

import graphene
from django.db import models
from graphene_django import DjangoObjectType

from ..exceptions import NestedConfigurationError
from ..orchestrator import NestedSaveOrchestrator
from ..registry import NestedAttributeRegistry
from ..utils.coercion import coerce_pk
from .errors import MutationError, build_mutation_error, build_nested_errors

logger = logging.getLogger(__name__)

_object_types: dict[Type[models.Model], Type[DjangoObjectType]] = {}


def get_object_type(model: Type[models.Model]) -> Type[DjangoObjectType]:
    """Return a DjangoObjectType exposing the concrete columns of ``model``."""
    object_type = _object_types.get(model)
    if object_type is None:
        meta = type(
            "Meta",
            (),
            {
                "model": model,
                "fields": [f.name for f in model._meta.concrete_fields],
                "skip_registry": True,
            },
        )
        object_type = type(f"{model.__name__}NestedNode", (DjangoObjectType,), {"Meta": meta})
        _object_types[model] = object_type
    return object_type


def build_nested_save_mutation(
    model: Type[models.Model],
    name: Optional[str] = None,
    registry: Optional[NestedAttributeRegistry] = None,
) -> Type[graphene.Mutation]:
    """
    Build a mutation creating (no ``id``) or updating (``id``) a ``model``
    row from a JSON payload that may carry nested attributes.
    """
    registry = registry or NestedAttributeRegistry.for_model(model)
    model_name = model.__name__
    mutation_name = name or f"Save{model_name}"

    class Arguments:
        id = graphene.ID(description=f"{model_name} to update; omit to create one")
        input = graphene.JSONString(required=True, description="Attributes and nested attributes")

    @classmethod
    def mutate(cls, root, info, input: Any, id: Optional[str] = None):
        if not isinstance(input, dict):
            return cls(
                ok=False,
                errors=[build_mutation_error("Input must be a JSON object.", code="invalid_payload")],
            )

        if id is not None:
            try:
                instance = model._default_manager.get(pk=coerce_pk(id))
            except (model.DoesNotExist, ValueError, TypeError):
                return cls(
                    ok=False,
                    errors=[
                        build_mutation_error(
                            message=f"{model_name} with id {id} does not exist",
                            field="id",
                            code="not_found",
                        )
                    ],
                )
        else:
            instance = model()

        try:
            result = NestedSaveOrchestrator(registry).save(instance, input)
        except NestedConfigurationError as exc:
            logger.warning(f"Rejected nested save of {model_name}: {exc}")
            return cls(ok=False, errors=build_nested_errors(exc))

        if not result:
            return cls(ok=False, errors=build_nested_errors(result.error))
        return cls(ok=True, errors=[], object_id=instance.pk, object=instance)

    attrs = {
        "Arguments": Arguments,
        "ok": graphene.Boolean(required=True),
        "errors": graphene.List(graphene.NonNull(MutationError)),
        "object_id": graphene.ID(),
        "object": graphene.Field(get_object_type(model)),
        "mutate": mutate,
        "__doc__": f"Save {model_name} with its nested attributes in one transaction.",
    }
    return type(mutation_name, (graphene.Mutation,), attrs)
