"""
Normalization utilities for nested attribute declarations.
"""

from typing import Any, Dict, Iterable, List, Mapping, Union

from graphene.utils.str_converters import to_snake_case


def normalize_accessor(value: str, *, snake_case: bool = False) -> str:
    """
    Normalize a relation accessor string.

    Args:
        value: Accessor like "line_items" or "lineItems".
        snake_case: Convert camelCase input to snake_case.

    Returns:
        Normalized accessor string.

    Examples:
        >>> normalize_accessor("  line_items ")
        "line_items"
        >>> normalize_accessor("lineItems", snake_case=True)
        "line_items"
    """
    if not value:
        return ""
    normalized = str(value).strip().replace(" ", "")
    if snake_case:
        normalized = to_snake_case(normalized)
    return normalized


def normalize_key_list(
    declaration: Union[None, str, Iterable[Any], Mapping[str, Any]],
) -> Dict[str, Any]:
    """
    Normalize a ``nested_attributes`` declaration into ``key -> options``.

    A plain iterable of keys maps every key to ``None`` (the accessor is
    derived from the key). A mapping keeps its values: an accessor name or a
    dict of options such as ``{"accessor": "tags", "pivot_accessor": "meta"}``.

    Examples:
        >>> normalize_key_list(["items", "customer"])
        {"items": None, "customer": None}
        >>> normalize_key_list({"labels": "tags"})
        {"labels": "tags"}
    """
    if not declaration:
        return {}
    if isinstance(declaration, str):
        return {declaration.strip(): None}
    if isinstance(declaration, Mapping):
        result: Dict[str, Any] = {}
        for key, options in declaration.items():
            if isinstance(options, str):
                options = options.strip() or None
            result[str(key).strip()] = options or None
        return result
    result = {}
    for key in declaration:
        if key is None:
            continue
        result[str(key).strip()] = None
    return result


def keys_of(declaration: Any) -> List[str]:
    """Return the declared nested keys, in declaration order."""
    return list(normalize_key_list(declaration).keys())
