from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import TYPE_CHECKING, cast
from urllib.parse import unquote

from litestar import Request
from litestar.connection.base import AuthT, StateT, UserT, empty_receive, empty_send

from litestar_inertia._utils import InertiaHeaders, split_header_list

if TYPE_CHECKING:
    from litestar.types import Receive, Scope, Send

    from litestar_inertia.plugin import InertiaPlugin

__all__ = ("InertiaDetails", "InertiaHeaders", "InertiaRequest", "RequestIntent", "parse_intent")

_DEFAULT_COMPONENT_OPT_KEYS: "tuple[str, ...]" = ("component", "page")


def _empty_names() -> "frozenset[str]":
    return frozenset()


@dataclass(frozen=True)
class RequestIntent:
    """What the client asked for, decoded from the Inertia request headers.

    Attributes:
        is_ajax: The request was sent by the Inertia client (``X-Inertia``).
        is_partial_reload: The client asked to reload a subset of the props of the component being rendered.
        only: Prop names the client asked for (``X-Inertia-Partial-Data``).
        except_: Prop names the client asked to leave out (``X-Inertia-Partial-Except``).
        except_once: Once cache keys the client already holds (``X-Inertia-Except-Once-Props``).
        reset: Prop names the client dropped and wants sent again (``X-Inertia-Reset``).
        is_prefetch: The request is a prefetch (``Purpose: prefetch``).
    """

    is_ajax: bool = False
    is_partial_reload: bool = False
    only: "frozenset[str]" = field(default_factory=_empty_names)
    except_: "frozenset[str]" = field(default_factory=_empty_names)
    except_once: "frozenset[str]" = field(default_factory=_empty_names)
    reset: "frozenset[str]" = field(default_factory=_empty_names)
    is_prefetch: bool = False

    @property
    def is_initial_load(self) -> bool:
        """True for a full browser visit that must be answered with HTML."""
        return not self.is_ajax

    def is_requested(self, key: str) -> bool:
        """Return True when ``key`` was named explicitly by a partial reload.

        Returns:
            True if the request is a partial reload with a non-empty ``only`` set containing ``key``.
        """
        return self.is_partial_reload and bool(self.only) and key in self.only


def _header_value(headers: "Mapping[str, str]", name: "InertiaHeaders") -> "str | None":
    """Read a header, unquoting values the client marked as URI encoded.

    Returns:
        The header value, or None if absent or empty.
    """
    lowered = name.value.lower()
    if value := headers.get(lowered):
        is_uri_encoded = headers.get(f"{lowered}-uri-autoencoded") == "true"
        return unquote(value) if is_uri_encoded else value
    return None


def parse_intent(headers: "Mapping[str, str]", component: "str | None") -> RequestIntent:
    """Decode the Inertia protocol headers of a request.

    A partial reload only counts when it targets the component being rendered; a partial request
    for another component is answered as a full (non-partial) Inertia visit.

    Args:
        headers: The request headers. Lookups are case-insensitive.
        component: The component being rendered.

    Returns:
        The parsed request intent. Malformed values degrade to empty sets.
    """
    normalized = {str(key).lower(): value for key, value in headers.items()}
    is_ajax = _header_value(normalized, InertiaHeaders.ENABLED) is not None
    partial_component = _header_value(normalized, InertiaHeaders.PARTIAL_COMPONENT)
    return RequestIntent(
        is_ajax=is_ajax,
        is_partial_reload=bool(is_ajax and component is not None and partial_component == component),
        only=split_header_list(_header_value(normalized, InertiaHeaders.PARTIAL_DATA)),
        except_=split_header_list(_header_value(normalized, InertiaHeaders.PARTIAL_EXCEPT)),
        except_once=split_header_list(_header_value(normalized, InertiaHeaders.EXCEPT_ONCE_PROPS)),
        reset=split_header_list(_header_value(normalized, InertiaHeaders.RESET)),
        is_prefetch=(_header_value(normalized, InertiaHeaders.PURPOSE) or "").lower() == "prefetch",
    )


class InertiaDetails:
    """InertiaDetails holds all the values sent by Inertia client in headers and provide convenient properties."""

    def __init__(self, request: "Request[UserT, AuthT, StateT]") -> None:
        """Initialize :class:`InertiaDetails`"""
        self.request = request

    def _get_header_value(self, name: "InertiaHeaders") -> "str | None":
        """Parse request header

        Check for uri encoded header and unquotes it in readable format.

        Args:
            name: The header name.

        Returns:
            The header value.
        """
        return _header_value(self.request.headers, name)

    def _get_route_component(self) -> "str | None":
        """Return the route component from handler opts if present.

        Returns:
            The route component name, or None if not configured on the handler.
        """
        rh = self.request.scope.get("route_handler")  # pyright: ignore[reportUnknownMemberType]
        if rh:
            component_opt_keys: "tuple[str, ...]" = _DEFAULT_COMPONENT_OPT_KEYS
            try:
                inertia_plugin: "InertiaPlugin" = self.request.app.plugins.get("InertiaPlugin")
                component_opt_keys = inertia_plugin.config.component_opt_keys
            except KeyError:
                pass

            for key in component_opt_keys:
                if (value := rh.opt.get(key)) is not None:
                    return cast("str", value)
        return None

    def __bool__(self) -> bool:
        """Return True when the request is sent by an Inertia client.

        Returns:
            True if the request originated from an Inertia client, otherwise False.
        """
        return self._get_header_value(InertiaHeaders.ENABLED) is not None

    @cached_property
    def route_component(self) -> "str | None":
        """Return the route component name.

        Returns:
            The route component name, or None if not configured.
        """
        return self._get_route_component()

    @cached_property
    def intent(self) -> RequestIntent:
        """Return the parsed request intent for the route component.

        Returns:
            The request intent.
        """
        return parse_intent(self.request.headers, self.route_component)

    @cached_property
    def version(self) -> "str | None":
        """Return the Inertia asset version sent by the client.

        Returns:
            The version string, or None if not present.
        """
        return self._get_header_value(InertiaHeaders.VERSION)

    @cached_property
    def error_bag(self) -> "str | None":
        """Return the error bag name for scoped validation errors.

        Returns:
            The error bag name, or None if not present.
        """
        return self._get_header_value(InertiaHeaders.ERROR_BAG)

    @cached_property
    def referer(self) -> "str | None":
        """Return the referer value if present.

        Returns:
            The referer value, or None if not present.
        """
        return self._get_header_value(InertiaHeaders.REFERER)


class InertiaRequest(Request[UserT, AuthT, StateT]):
    """Inertia Request class to work with Inertia client."""

    __slots__ = ("inertia",)

    def __init__(self, scope: "Scope", receive: "Receive" = empty_receive, send: "Send" = empty_send) -> None:
        """Initialize :class:`InertiaRequest`"""
        super().__init__(scope=scope, receive=receive, send=send)
        self.inertia = InertiaDetails(self)

    @property
    def is_inertia(self) -> bool:
        """True if the request contained inertia headers.

        Returns:
            True if the request contains Inertia headers, otherwise False.
        """
        return bool(self.inertia)

    @property
    def inertia_enabled(self) -> bool:
        """True if the route handler contains an inertia enabled configuration.

        Returns:
            True if the route is configured with an Inertia component, otherwise False.
        """
        return bool(self.inertia.route_component is not None)

    @property
    def is_partial_render(self) -> bool:
        """True if the request is a partial reload of the route component.

        Returns:
            True if the request is a partial reload, otherwise False.
        """
        return self.inertia.intent.is_partial_reload

    @property
    def partial_keys(self) -> "set[str]":
        """Get the props to include in partial render.

        Returns:
            A set of prop keys to include.
        """
        return set(self.inertia.intent.only)

    @property
    def partial_except_keys(self) -> "set[str]":
        """Get the props to exclude from partial render.

        Takes precedence over partial_keys if both present.

        Returns:
            A set of prop keys to exclude.
        """
        return set(self.inertia.intent.except_)

    @property
    def except_once_keys(self) -> "set[str]":
        """Get the once cache keys the client already holds.

        Returns:
            A set of once cache keys.
        """
        return set(self.inertia.intent.except_once)

    @property
    def reset_keys(self) -> "set[str]":
        """Get the props to reset on navigation.

        Returns:
            A set of prop keys to reset.
        """
        return set(self.inertia.intent.reset)

    @property
    def is_prefetch(self) -> bool:
        """True if the client is prefetching the page."""
        return self.inertia.intent.is_prefetch

    @property
    def error_bag(self) -> "str | None":
        """Get the error bag name for scoped validation errors.

        Returns:
            The error bag name, or None if not present.
        """
        return self.inertia.error_bag

    @property
    def inertia_version(self) -> "str | None":
        """Get the Inertia asset version sent by the client.

        The client sends this header so the server can detect version mismatches
        and trigger a hard refresh when assets have changed.

        Returns:
            The version string sent by the client, or None if not present.
        """
        return self.inertia.version
