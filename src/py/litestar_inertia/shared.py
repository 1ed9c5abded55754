"""Process-wide shared props and component composers.

The registry is owned by :class:`~litestar_inertia.plugin.InertiaPlugin` and is meant to be filled
while the application starts. Every response reads a snapshot, so per-request work never
observes a half-applied mutation.
"""

import logging
from collections.abc import Iterable, Mapping
from threading import Lock
from typing import TYPE_CHECKING, Any, Callable, Optional

from litestar_inertia.props import Prop, once

if TYPE_CHECKING:
    from litestar.connection import ASGIConnection

__all__ = ("WILDCARD_COMPONENT", "Composer", "SharedProps")

logger = logging.getLogger("litestar_inertia")

WILDCARD_COMPONENT = "*"
"""Composers registered under this name run for every component."""

Composer = Callable[["ASGIConnection[Any, Any, Any, Any]"], Optional[Mapping[str, Any]]]
"""A callable receiving the current connection and returning extra props (or None)."""


class SharedProps:
    """Registry of globally shared props and component composers."""

    __slots__ = ("_composers", "_lock", "_shared")

    def __init__(self, shared: "Mapping[str, Any] | None" = None) -> None:
        self._lock = Lock()
        self._shared: "dict[str, Any]" = dict(shared or {})
        self._composers: "dict[str, list[Composer]]" = {}

    def share(self, key: "str | Mapping[str, Any]", value: "Any" = None) -> None:
        """Share one prop, or a mapping of props, with every Inertia response.

        Args:
            key: The prop name, or a mapping of prop names to values.
            value: The value when ``key`` is a name.
        """
        with self._lock:
            if isinstance(key, Mapping):
                self._shared.update(key)
            else:
                self._shared[key] = value

    def share_once(self, key: str, callback: "Callable[[], Any]") -> "Prop[Any]":
        """Share a once prop and return it so it can be configured further.

        Example::

            plugin.shared.share_once("countries", load_countries).until(timedelta(days=1))

        Returns:
            The once prop.
        """
        prop = once(callback)
        self.share(key, prop)
        return prop

    def get(self, key: "str | None" = None, default: "Any" = None) -> "Any":
        """Return one shared prop, or a copy of all of them when ``key`` is None."""
        with self._lock:
            if key is None:
                return dict(self._shared)
            return self._shared.get(key, default)

    def snapshot(self) -> "dict[str, Any]":
        """Return a copy of the shared props for a single response."""
        with self._lock:
            return dict(self._shared)

    def composer(self, components: "str | Iterable[str]", composer: "Composer") -> None:
        """Register a composer for one or more components.

        Composers run right before a component renders; the props they return are merged into
        the shared layer of that response. Use ``"*"`` to run a composer for every component.

        Args:
            components: A component name or an iterable of names.
            composer: The composer.
        """
        names = [components] if isinstance(components, str) else list(components)
        with self._lock:
            for name in names:
                self._composers.setdefault(name, []).append(composer)

    def composers_for(self, component: str) -> "list[Composer]":
        """Return the composers of ``component`` followed by the wildcard composers."""
        with self._lock:
            exact = list(self._composers.get(component, ()))
            wildcard = list(self._composers.get(WILDCARD_COMPONENT, ())) if component != WILDCARD_COMPONENT else []
        return exact + wildcard

    def compose(self, component: str, connection: "ASGIConnection[Any, Any, Any, Any]") -> "dict[str, Any]":
        """Run the composers registered for ``component`` and collect the props they return.

        Args:
            component: The component being rendered.
            connection: The current connection, passed to every composer.

        Returns:
            The composed props, later composers overriding earlier ones.
        """
        props: "dict[str, Any]" = {}
        for composer in self.composers_for(component):
            logger.debug("Running composer %r for component %r", composer, component)
            if extra := composer(connection):
                props.update(extra)
        return props

    def flush(self) -> None:
        """Forget every shared prop and composer."""
        with self._lock:
            self._shared.clear()
            self._composers.clear()
