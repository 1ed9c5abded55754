"""Inertia protocol types and serialization helpers.

This module defines the Python-side data structures for the Inertia.js protocol and provides
helpers to serialize dataclass instances into the camelCase shape expected by the client.
"""

import re
from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from typing import Any, Generic, Literal, TypedDict, TypeVar, cast

__all__ = (
    "InertiaHeaderType",
    "MergeStrategy",
    "OncePropPayload",
    "PageProps",
    "PropKind",
    "to_camel_case",
    "to_inertia_dict",
)


T = TypeVar("T")

MergeStrategy = Literal["append", "prepend", "deep"]

_SNAKE_CASE_PATTERN = re.compile(r"_([a-z])")


class PropKind(str, Enum):
    """Lifecycle policy attached to a prop.

    The kind decides when the resolution engine evaluates a prop and whether it is sent at all.
    """

    PLAIN = "plain"
    ALWAYS = "always"
    LAZY = "lazy"
    DEFERRED = "deferred"
    MERGE = "merge"
    ONCE = "once"


class OncePropPayload(TypedDict):
    """Wire shape of a single ``onceProps`` entry."""

    prop: str
    expiresAt: "int | None"  # noqa: N815


def to_camel_case(snake_str: str) -> str:
    """Convert snake_case string to camelCase.

    Args:
        snake_str: A snake_case string.

    Returns:
        The camelCase equivalent.

    Examples:
        >>> to_camel_case("encrypt_history")
        'encryptHistory'
        >>> to_camel_case("deep_merge_props")
        'deepMergeProps'
    """
    return _SNAKE_CASE_PATTERN.sub(lambda m: m.group(1).upper(), snake_str)


def _is_dataclass_instance(value: Any) -> bool:
    return is_dataclass(value) and not isinstance(value, type)


def _convert_value(value: Any) -> Any:
    """Recursively convert a value for Inertia.js protocol.

    Handles nested dataclasses, dicts, and lists without using asdict()
    to avoid Python 3.10/3.11 bugs with dict[str, list[str]] types.

    Returns:
        The converted value.
    """
    if _is_dataclass_instance(value):
        return to_inertia_dict(value)
    if isinstance(value, dict):
        return {k: _convert_value(v) for k, v in value.items()}  # pyright: ignore[reportUnknownVariableType]
    if isinstance(value, (list, tuple)):
        return type(value)(_convert_value(v) for v in value)  # pyright: ignore[reportUnknownArgumentType,reportUnknownVariableType]
    return value


def to_inertia_dict(obj: Any, required_fields: "set[str] | None" = None) -> dict[str, Any]:
    """Convert a dataclass to a dict with camelCase keys for Inertia.js protocol.

    Args:
        obj: A dataclass instance.
        required_fields: Set of field names that should always be included (even if None).

    Returns:
        A dictionary with camelCase keys, excluding None values for optional fields.

    Note:
        This function avoids using dataclasses.asdict() directly because of a bug
        in Python 3.10/3.11 that fails when processing dict[str, list[str]] types.
        See: https://github.com/python/cpython/issues/103000
    """
    if not _is_dataclass_instance(obj):
        return cast("dict[str, Any]", obj)

    required_fields = required_fields or set()
    result: dict[str, Any] = {}

    for dc_field in fields(obj):
        field_name = dc_field.name
        value = getattr(obj, field_name)
        if value is None and field_name not in required_fields:
            continue

        # The props mapping holds user data; its keys are never rewritten.
        value = value if field_name == "props" else _convert_value(value)
        camel_key = to_camel_case(field_name)
        result[camel_key] = value

    return result


@dataclass
class PageProps(Generic[T]):
    """Inertia Page Props Type.

    This represents the page object sent to the Inertia client.
    See: https://inertiajs.com/the-protocol

    Note: Field names use snake_case in Python but are serialized to camelCase
    for the Inertia.js protocol using `to_inertia_dict()`.

    Attributes:
        component: JavaScript component name to render.
        url: Current page URL.
        version: Asset version identifier for cache busting.
        props: Page data/props passed to the component.
        encrypt_history: Whether to encrypt browser history state.
        clear_history: Whether to clear encrypted history state.
        deferred_props: Deferred group name to the prop names loaded by that group.
        merge_props: Props to append during navigation.
        prepend_props: Props to prepend during navigation.
        deep_merge_props: Props to deep merge during navigation.
        match_props_on: ``"prop.key"`` paths used to match items during merge.
        once_props: Once cache key to the source prop name and expiry.
    """

    component: str
    url: str
    version: str
    props: dict[str, Any]

    encrypt_history: bool = False
    clear_history: bool = False

    deferred_props: "dict[str, list[str]] | None" = None
    merge_props: "list[str] | None" = None
    prepend_props: "list[str] | None" = None
    deep_merge_props: "list[str] | None" = None
    match_props_on: "list[str] | None" = None
    once_props: "dict[str, OncePropPayload] | None" = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to Inertia.js protocol format with camelCase keys.

        Returns:
            The Inertia protocol dictionary.
        """
        return to_inertia_dict(
            self, required_fields={"component", "url", "version", "props", "encrypt_history", "clear_history"}
        )


class InertiaHeaderType(TypedDict, total=False):
    """Type for inertia_headers parameter in get_headers()."""

    enabled: "bool | None"
    location: "str | None"
