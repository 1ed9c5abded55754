"""Prop resolution engine.

Given a prop bag, the parsed request intent and the bag's metadata, decide for each key whether
it is sent and resolve what is sent. Every resolver runs at most once per call.

Policy on an initial (non-Inertia) visit:

================  ==========================================
kind              result
================  ==========================================
deferred, lazy    left out, fetched later by a partial reload
everything else   resolved
================  ==========================================

Policy on an Inertia visit, applied in order:

1. partial reload and key in ``except``: left out.
2. partial reload, ``only`` not empty and key not in it: left out, unless the prop is an
   always prop or the key is ``errors`` or ``flash``.
3. by kind:

================  ==================================================================================
kind              result
================  ==================================================================================
once              left out when its cache key is held by the client, was not named in ``only``
                  and the prop is not fresh; otherwise resolved
deferred          resolved on a partial reload when ``only`` is empty or names it, else left out
lazy              as deferred; also left out when once-flagged and cached by the client
merge             left out when once-flagged, cached by the client and not named in ``only``;
                  otherwise resolved
always            resolved
plain/callable    resolved
raw value         sent, nested structures resolved recursively
================  ==================================================================================

A key listed in ``X-Inertia-Reset`` is never treated as cached by the client.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from litestar_inertia._async_mixin import invoke_resolver
from litestar_inertia.props import Prop, is_prop
from litestar_inertia.types import PropKind

if TYPE_CHECKING:
    from collections.abc import Callable

    from anyio.from_thread import BlockingPortal

    from litestar_inertia.metadata import PropMetadata
    from litestar_inertia.request import RequestIntent

__all__ = ("ALWAYS_INCLUDED_KEYS", "is_resolver", "resolve_props", "resolve_value")

ALWAYS_INCLUDED_KEYS = frozenset({"errors", "flash"})
"""Keys that bypass the ``only`` filter of a partial reload."""

_NESTED_SKIPPED_KINDS = frozenset({PropKind.LAZY, PropKind.DEFERRED})


def is_resolver(value: "Any") -> bool:
    """Return True for zero-argument computations placed directly in a prop bag.

    Classes are callable but are values, not computations.

    Returns:
        True if ``value`` should be invoked to obtain the prop value.
    """
    return callable(value) and not isinstance(value, type) and not is_prop(value)


def resolve_value(value: "Any", portal: "BlockingPortal | None" = None) -> "Any":
    """Resolve a value for serialization.

    Callables are invoked and mappings, lists and tuples are walked recursively. Nested lazy and
    deferred props are dropped; other nested props are resolved.

    Args:
        value: The value to resolve.
        portal: Optional portal for async resolvers.

    Returns:
        The resolved value.
    """
    if is_prop(value):
        return resolve_value(value.resolve(portal), portal)
    if is_resolver(value):
        return resolve_value(invoke_resolver(cast("Callable[[], Any]", value), portal), portal)
    if isinstance(value, (str, bytes)):
        return value
    if isinstance(value, Mapping):
        return {
            k: resolve_value(v, portal)
            for k, v in cast("Mapping[Any, Any]", value).items()
            if not _is_skipped_when_nested(v)
        }
    if isinstance(value, (list, tuple)):
        items = [resolve_value(v, portal) for v in cast("list[Any]", value) if not _is_skipped_when_nested(v)]
        return type(value)(items) if isinstance(value, tuple) else items  # pyright: ignore[reportUnknownArgumentType]
    return value


def _is_skipped_when_nested(value: "Any") -> bool:
    return is_prop(value) and value.kind in _NESTED_SKIPPED_KINDS


def resolve_props(
    props: "Mapping[str, Any]",
    intent: "RequestIntent",
    metadata: "PropMetadata",
    is_initial_load: "bool | None" = None,
    portal: "BlockingPortal | None" = None,
) -> "dict[str, Any]":
    """Decide which props are sent and resolve them.

    Args:
        props: The prop bag.
        intent: The parsed request intent.
        metadata: Metadata extracted from ``props``.
        is_initial_load: Whether the response is a full page load. Defaults to ``not intent.is_ajax``.
        portal: Optional portal for async resolvers.

    Returns:
        The resolved props, in bag order.
    """
    if is_initial_load is None:
        is_initial_load = intent.is_initial_load

    result: "dict[str, Any]" = {}
    for key, value in props.items():
        if is_initial_load:
            if is_prop(value) and value.kind in _NESTED_SKIPPED_KINDS:
                continue
            result[key] = resolve_value(value, portal)
        elif _should_send(key, value, intent):
            result[key] = resolve_value(value, portal)
    return result


def _is_filtered_out(key: str, value: "Any", intent: "RequestIntent") -> bool:
    if not intent.is_partial_reload:
        return False
    if key in intent.except_:
        return True
    if not intent.only or key in intent.only:
        return False
    is_always = is_prop(value) and value.kind is PropKind.ALWAYS
    return not (is_always or key in ALWAYS_INCLUDED_KEYS)


def _is_cached_on_client(key: str, prop: "Prop[Any]", intent: "RequestIntent") -> bool:
    cache_key = prop.cache_key or key
    if key in intent.reset or cache_key in intent.reset:
        return False
    return cache_key in intent.except_once


def _is_partial_fetch(key: str, intent: "RequestIntent") -> bool:
    return intent.is_partial_reload and (not intent.only or key in intent.only)


def _should_send(key: str, value: "Any", intent: "RequestIntent") -> bool:
    if _is_filtered_out(key, value, intent):
        return False
    if not is_prop(value):
        return True

    match value.kind:
        case PropKind.ONCE:
            return value.is_fresh or intent.is_requested(key) or not _is_cached_on_client(key, value, intent)
        case PropKind.DEFERRED:
            return _is_partial_fetch(key, intent)
        case PropKind.LAZY:
            if not _is_partial_fetch(key, intent):
                return False
            return not (value.is_once and not value.is_fresh and _is_cached_on_client(key, value, intent))
        case PropKind.MERGE:
            if value.is_once and not value.is_fresh and not intent.is_requested(key):
                return not _is_cached_on_client(key, value, intent)
            return True
        case _:
            return True
