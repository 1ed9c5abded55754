"""Prop wrappers carrying an Inertia lifecycle policy.

A prop bag returned by a route handler may contain plain values, zero-argument callables and
:class:`Prop` instances. A :class:`Prop` wraps a value or resolver together with a
:class:`~litestar_inertia.types.PropKind` that tells the resolution engine when to evaluate it.

Example::

    from litestar_inertia import always, defer, merge, once, optional

    @get("/users", component="Users/Index")
    async def index() -> dict[str, Any]:
        return {
            "users": merge(lambda: load_users(page), match_on="id"),
            "stats": defer(load_stats, group="sidebar"),
            "roles": once(load_roles).as_("roles").until(timedelta(hours=1)),
            "filters": optional(load_filters),
            "notifications": always(count_notifications),
        }
"""

import time
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Generic, TypeGuard, TypeVar, cast

from typing_extensions import Self

from litestar_inertia._async_mixin import AsyncRenderMixin
from litestar_inertia.exceptions import PropConfigurationError
from litestar_inertia.types import MergeStrategy, PropKind

if TYPE_CHECKING:
    from collections.abc import Callable

    from anyio.from_thread import BlockingPortal

__all__ = (
    "DEFAULT_DEFERRED_GROUP",
    "Prop",
    "always",
    "deep_merge",
    "defer",
    "is_prop",
    "lazy",
    "merge",
    "once",
    "optional",
    "prepend",
)

T = TypeVar("T")

# Default group for deferred props
DEFAULT_DEFERRED_GROUP = "default"

_MERGE_STRATEGIES: "tuple[MergeStrategy, ...]" = ("append", "prepend", "deep")
_ONCE_CAPABLE = frozenset({PropKind.LAZY, PropKind.DEFERRED, PropKind.MERGE, PropKind.ONCE})


class Prop(AsyncRenderMixin, Generic[T]):
    """A value or resolver with an attached lifecycle policy.

    The kind is fixed at construction. Secondary behaviour is attached with the chainable
    modifier methods, each of which returns the same instance.
    """

    def __init__(
        self,
        kind: "PropKind",
        value: "Callable[[], T] | T",
        *,
        group: "str | None" = None,
        strategy: "MergeStrategy | None" = None,
        match_key: "str | None" = None,
        cache_key: "str | None" = None,
        expires_at: "int | None" = None,
    ) -> None:
        """Initialize a Prop.

        Args:
            kind: The lifecycle policy.
            value: A zero-argument callable (sync or async) or a ready value.
            group: Deferred group name. Only valid for deferred props.
            strategy: Merge strategy. Only valid for merge props.
            match_key: Key used to match merged items. Only valid for merge props.
            cache_key: Client cache key. Only valid for once props.
            expires_at: Client cache expiry in milliseconds since the epoch. Only valid for once props.

        Raises:
            PropConfigurationError: If a parameter does not apply to ``kind``.
        """
        kind = PropKind(kind)
        if group is not None and kind is not PropKind.DEFERRED:
            msg = "Only deferred props belong to a group"
            raise PropConfigurationError(msg, kind=kind.value)
        if (strategy is not None or match_key is not None) and kind is not PropKind.MERGE:
            msg = "Only merge props accept a merge strategy or match key"
            raise PropConfigurationError(msg, kind=kind.value)
        if (cache_key is not None or expires_at is not None) and kind is not PropKind.ONCE:
            msg = "Only once props accept a cache key or expiration"
            raise PropConfigurationError(msg, kind=kind.value)

        self._kind = kind
        self._value = value
        self._group = (group or DEFAULT_DEFERRED_GROUP) if kind is PropKind.DEFERRED else None
        self._strategy: "MergeStrategy | None" = None
        if kind is PropKind.MERGE:
            self._strategy = _validate_strategy(strategy or "append")
        self._match_key = match_key
        self._cache_key: "str | None" = None
        if cache_key is not None:
            self.as_(cache_key)
        self._expires_at = expires_at
        self._once = kind is PropKind.ONCE
        self._fresh = False
        self._merge_config: "MergeStrategy | None" = None
        self._append_paths: "dict[str, str | None]" = {}
        self._prepend_paths: "list[str]" = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self._kind.value!r}, value={self._value!r})"

    def __call__(self, portal: "BlockingPortal | None" = None) -> "T":
        return self.resolve(portal)

    def resolve(self, portal: "BlockingPortal | None" = None) -> "T":
        """Evaluate the prop.

        The resolver is called every time this method is invoked; callers are responsible for
        resolving a prop at most once per response.

        Args:
            portal: Optional portal used for async resolvers.

        Returns:
            The resolved value.
        """
        if callable(self._value):
            return cast("T", self._invoke(cast("Callable[[], T]", self._value), portal))
        return self._value

    @property
    def kind(self) -> "PropKind":
        """The lifecycle policy of this prop."""
        return self._kind

    @property
    def group(self) -> "str | None":
        """The deferred group this prop belongs to."""
        return self._group

    @property
    def strategy(self) -> "MergeStrategy | None":
        """The merge strategy of a merge prop."""
        return self._strategy

    @property
    def match_key(self) -> "str | None":
        """Key path used by the client to match merged items."""
        return self._match_key

    @property
    def cache_key(self) -> "str | None":
        """Custom client cache key of a once prop, if one was set with :meth:`as_`."""
        return self._cache_key

    @property
    def expires_at(self) -> "int | None":
        """Client cache expiry in milliseconds since the epoch."""
        return self._expires_at

    @property
    def is_fresh(self) -> bool:
        """True when the client cache must be ignored for this prop."""
        return self._fresh

    @property
    def is_once(self) -> bool:
        """True when the client caches this prop after first receipt."""
        return self._once

    @property
    def merge_config(self) -> "MergeStrategy | None":
        """Merge strategy applied when a deferred prop arrives."""
        return self._merge_config

    @property
    def append_paths(self) -> "dict[str, str | None]":
        """Nested paths appended to, mapped to their optional match key."""
        return dict(self._append_paths)

    @property
    def prepend_paths(self) -> "list[str]":
        """Nested paths prepended to."""
        return list(self._prepend_paths)

    def _require(self, modifier: str, *kinds: "PropKind") -> None:
        if self._kind not in kinds:
            msg = f"{modifier}() is not supported"
            raise PropConfigurationError(msg, kind=self._kind.value)

    def once(self) -> Self:
        """Let the client cache this prop after first receipt."""
        self._require("once", *_ONCE_CAPABLE)
        self._once = True
        return self

    def fresh(self, fresh: bool = True) -> Self:
        """Ignore the client cache and always send this prop."""
        self._require("fresh", *_ONCE_CAPABLE)
        self._fresh = fresh
        return self

    def merge(self) -> Self:
        """Append the value to the client's copy once the deferred prop arrives."""
        self._require("merge", PropKind.DEFERRED)
        self._merge_config = "append"
        return self

    def deep_merge(self) -> Self:
        """Deep merge the value into the client's copy once the deferred prop arrives."""
        self._require("deep_merge", PropKind.DEFERRED)
        self._merge_config = "deep"
        return self

    def as_(self, key: str) -> Self:
        """Share the client cache entry of this once prop under ``key``.

        Args:
            key: The cache key. Props on different pages using the same key share one entry.

        Raises:
            PropConfigurationError: If ``key`` is empty.

        Returns:
            The prop.
        """
        self._require("as_", PropKind.ONCE)
        if not key:
            msg = "A once prop cache key cannot be empty"
            raise PropConfigurationError(msg, kind=self._kind.value)
        self._cache_key = key
        return self

    def until(self, expiration: "datetime | timedelta | int") -> Self:
        """Expire the client cache entry.

        Args:
            expiration: An absolute ``datetime``, a ``timedelta`` from now, or a number of seconds from now.

        Raises:
            PropConfigurationError: If ``expiration`` has an unsupported type.

        Returns:
            The prop.
        """
        self._require("until", PropKind.ONCE)
        if isinstance(expiration, datetime):
            self._expires_at = int(expiration.timestamp() * 1000)
        elif isinstance(expiration, timedelta):
            self._expires_at = int((time.time() + expiration.total_seconds()) * 1000)
        elif isinstance(expiration, int) and not isinstance(expiration, bool):
            self._expires_at = int((time.time() + expiration) * 1000)
        else:
            msg = f"Unsupported expiration {expiration!r}"
            raise PropConfigurationError(msg, kind=self._kind.value)
        return self

    def match_on(self, key: str) -> Self:
        """Match merged items on ``key`` instead of appending duplicates."""
        self._require("match_on", PropKind.MERGE)
        self._match_key = key
        return self

    def append(
        self,
        paths: "str | Iterable[str] | Mapping[str, str | None] | None" = None,
        match_on: "str | None" = None,
    ) -> Self:
        """Append to the client's copy, optionally at nested paths.

        Args:
            paths: A path, an iterable of paths, or a mapping of path to match key.
            match_on: Match key used when ``paths`` is a single path.

        Returns:
            The prop.
        """
        self._require("append", PropKind.MERGE)
        self._strategy = "append"
        if paths is None:
            return self
        if isinstance(paths, str):
            self._append_paths[paths] = match_on
        elif isinstance(paths, Mapping):
            self._append_paths.update(cast("Mapping[str, str | None]", paths))
        else:
            for path in paths:
                self._append_paths[path] = None
        return self

    def prepend(self, paths: "str | Iterable[str] | None" = None) -> Self:
        """Prepend to the client's copy, optionally at nested paths."""
        self._require("prepend", PropKind.MERGE)
        self._strategy = "prepend"
        if paths is None:
            return self
        if isinstance(paths, str):
            self._prepend_paths.append(paths)
        else:
            self._prepend_paths.extend(paths)
        return self


def _validate_strategy(strategy: str) -> "MergeStrategy":
    if strategy not in _MERGE_STRATEGIES:
        msg = f"Unknown merge strategy {strategy!r}, expected one of {', '.join(_MERGE_STRATEGIES)}"
        raise PropConfigurationError(msg, kind=PropKind.MERGE.value)
    return cast("MergeStrategy", strategy)


def is_prop(value: "Any") -> "TypeGuard[Prop[Any]]":
    """Check if value is a Prop.

    Args:
        value: Any value to check

    Returns:
        bool: True if value is a Prop
    """
    return isinstance(value, Prop)


def always(value: "Callable[[], T] | T") -> "Prop[T]":
    """Create a prop that is sent on every response, even when a partial reload did not ask for it.

    Args:
        value: The value or resolver.

    Returns:
        An always prop.
    """
    return Prop[T](PropKind.ALWAYS, value)


def lazy(callback: "Callable[[], T]") -> "Prop[T]":
    """Create a prop that is only evaluated when a partial reload asks for it.

    Lazy props are never part of the first page load.

    Args:
        callback: The resolver.

    Returns:
        A lazy prop.
    """
    return Prop[T](PropKind.LAZY, callback)


optional = lazy


def defer(callback: "Callable[[], T]", group: str = DEFAULT_DEFERRED_GROUP) -> "Prop[T]":
    """Create a deferred prop with optional grouping.

    Deferred props are left out of the initial page render; the client fetches them right
    after with a partial reload. Props in the same group are fetched together in a single request.

    Args:
        callback: The resolver.
        group: The group name for batched loading. Defaults to "default".

    Returns:
        A deferred prop.

    Example::

        # Basic deferred prop
        defer(lambda: Permission.all())

        # Grouped deferred props (fetched together)
        {"teams": defer(get_teams, group="attributes"), "projects": defer(get_projects, group="attributes")}
    """
    return Prop[T](PropKind.DEFERRED, callback, group=group)


def merge(value: "Callable[[], T] | T", match_on: "str | None" = None) -> "Prop[T]":
    """Create a prop whose value is appended to the client's copy.

    Note: Prop merging only happens on the client during partial reloads. Full page visits
    always replace props entirely.

    Args:
        value: The value or resolver.
        match_on: Optional key to match items on, updating existing items instead of duplicating.

    Returns:
        A merge prop.
    """
    return Prop[T](PropKind.MERGE, value, strategy="append", match_key=match_on)


def prepend(value: "Callable[[], T] | T", match_on: "str | None" = None) -> "Prop[T]":
    """Create a prop whose value is prepended to the client's copy.

    Returns:
        A merge prop.
    """
    return Prop[T](PropKind.MERGE, value, strategy="prepend", match_key=match_on)


def deep_merge(value: "Callable[[], T] | T", match_on: "str | None" = None) -> "Prop[T]":
    """Create a prop whose value is recursively merged into the client's copy.

    Returns:
        A merge prop.
    """
    return Prop[T](PropKind.MERGE, value, strategy="deep", match_key=match_on)


def once(callback: "Callable[[], T]", key: "str | None" = None, expires_at: "int | None" = None) -> "Prop[T]":
    """Create a prop the client caches after first receipt.

    The client reports the cache keys it holds in ``X-Inertia-Except-Once-Props`` and the
    server then skips resolving them.

    Args:
        callback: The resolver.
        key: Optional cache key, shared across pages. Defaults to the prop name.
        expires_at: Optional expiry in milliseconds since the epoch.

    Returns:
        A once prop.
    """
    return Prop[T](PropKind.ONCE, callback, cache_key=key, expires_at=expires_at)
