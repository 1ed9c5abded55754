"""Async rendering mixin for Inertia prop resolvers.

This module provides shared functionality for resolving prop callbacks that may be
either plain callables or coroutine functions, using a blocking portal for the latter.
"""

import inspect
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, TypeGuard, TypeVar, cast

from anyio.from_thread import BlockingPortal, start_blocking_portal

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Generator

T = TypeVar("T")


class AsyncRenderMixin:
    """Mixin providing async rendering utilities for prop resolvers.

    - ``with_portal``: Context manager for obtaining a BlockingPortal
    - ``_is_awaitable``: Type guard for checking if a callable is async
    - ``_invoke``: Call a resolver once, through the portal when it is async

    Example::

        class MyProp(AsyncRenderMixin):
            def resolve(self, portal: BlockingPortal | None = None) -> Any:
                return self._invoke(self._callback, portal)
    """

    @staticmethod
    @contextmanager
    def with_portal(portal: "BlockingPortal | None" = None) -> "Generator[BlockingPortal, None, None]":
        """Get or create a blocking portal for async execution.

        Args:
            portal: Optional existing portal to reuse. If None, creates a new one.

        Yields:
            A BlockingPortal for executing async code from sync context.
        """
        if portal is None:
            with start_blocking_portal() as p:
                yield p
        else:
            yield portal

    @staticmethod
    def _is_awaitable(v: "Callable[..., T | Coroutine[Any, Any, T]]") -> "TypeGuard[Coroutine[Any, Any, T]]":
        """Check if a callable is an async coroutine function.

        Args:
            v: The callable to check.

        Returns:
            True if the callable is an async coroutine function.
        """
        return inspect.iscoroutinefunction(v)

    @classmethod
    def _invoke(cls, callback: "Callable[[], Any]", portal: "BlockingPortal | None" = None) -> Any:
        """Call a zero-argument resolver and return its value.

        Args:
            callback: The resolver.
            portal: Optional portal used when ``callback`` is a coroutine function.

        Returns:
            The value produced by the resolver.
        """
        if not cls._is_awaitable(callback):
            return callback()
        with cls.with_portal(portal) as p:
            return p.call(cast("Callable[[], Coroutine[Any, Any, Any]]", callback))


def invoke_resolver(callback: "Callable[[], Any]", portal: "BlockingPortal | None" = None) -> Any:
    """Call a plain (unwrapped) resolver found in a prop bag.

    Returns:
        The resolved value.
    """
    return AsyncRenderMixin._invoke(callback, portal)  # pyright: ignore[reportPrivateUsage]
