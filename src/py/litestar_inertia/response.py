import contextlib
import itertools
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from mimetypes import guess_type
from pathlib import PurePath
from typing import TYPE_CHECKING, Any, TypeVar, cast
from urllib.parse import quote, urlparse

from litestar import Litestar, MediaType, Request, Response
from litestar.datastructures.cookie import Cookie
from litestar.exceptions import ImproperlyConfiguredException
from litestar.response import Redirect
from litestar.response.base import ASGIResponse
from litestar.serialization import get_serializer
from litestar.status_codes import HTTP_200_OK, HTTP_302_FOUND, HTTP_303_SEE_OTHER, HTTP_409_CONFLICT
from litestar.utils.empty import value_or_default
from litestar.utils.helpers import get_enum_string_value
from litestar.utils.scope.state import ScopeState

from litestar_inertia._utils import InertiaHeaders, get_headers
from litestar_inertia.helpers import CLEAR_HISTORY_SESSION_KEY, ENCRYPT_HISTORY_SESSION_KEY, get_shared_props
from litestar_inertia.metadata import extract_metadata
from litestar_inertia.plugin import InertiaPlugin
from litestar_inertia.request import InertiaDetails, InertiaRequest, RequestIntent
from litestar_inertia.resolution import resolve_props
from litestar_inertia.types import InertiaHeaderType, PageProps

if TYPE_CHECKING:
    from anyio.from_thread import BlockingPortal
    from litestar.background_tasks import BackgroundTask, BackgroundTasks
    from litestar.connection.base import AuthT, StateT, UserT
    from litestar.types import ResponseCookies, ResponseHeaders, TypeEncodersMap

__all__ = (
    "InertiaBack",
    "InertiaExternalRedirect",
    "InertiaRedirect",
    "InertiaResponse",
    "VersionMismatch",
    "assemble",
    "back",
    "build_page",
    "is_version_mismatch",
    "redirect",
)

T = TypeVar("T")

_SEE_OTHER_METHODS = frozenset({"PUT", "PATCH", "DELETE"})
_LOCATION_SAFE_CHARS = "/#%[]=:;$&()+,!?*@'~"


@dataclass(frozen=True)
class VersionMismatch:
    """Signal that the client holds stale assets and must reload ``location``."""

    location: str


def is_version_mismatch(method: str, intent: "RequestIntent", client_version: "str | None", version: str) -> bool:
    """Return True when an Inertia GET request was sent with a stale asset version.

    Non-GET requests never mismatch so that in-flight form submissions are not discarded.

    Returns:
        True if the client must perform a full reload.
    """
    return method.upper() == "GET" and intent.is_ajax and client_version is not None and client_version != version


def build_page(
    component: str,
    props: "Mapping[str, Any]",
    intent: "RequestIntent",
    *,
    url: str,
    version: str,
    encrypt_history: bool = False,
    clear_history: bool = False,
    portal: "BlockingPortal | None" = None,
) -> "PageProps[Any]":
    """Build the page object for an assembled prop bag.

    Metadata is extracted from the full bag before resolution, so props that are left out of
    this response (deferred props, once props cached by the client) are still announced.

    Args:
        component: The component to render.
        props: The assembled prop bag.
        intent: The parsed request intent.
        url: The page URL.
        version: The server asset version.
        encrypt_history: Whether the client should encrypt the history entry.
        clear_history: Whether the client should clear its encrypted history.
        portal: Optional portal for async resolvers.

    Returns:
        The page object. Metadata fields are None when empty.
    """
    metadata = extract_metadata(props)
    resolved = resolve_props(props, intent, metadata, portal=portal)
    return PageProps[Any](
        component=component,
        url=url,
        version=version,
        props=resolved,
        encrypt_history=encrypt_history,
        clear_history=clear_history,
        deferred_props=metadata.deferred_props or None,
        merge_props=metadata.merge_props or None,
        prepend_props=metadata.prepend_props or None,
        deep_merge_props=metadata.deep_merge_props or None,
        match_props_on=metadata.match_props_on or None,
        once_props=metadata.once_props_payload() or None,
    )


def assemble(
    component: str,
    props: "Mapping[str, Any]",
    intent: "RequestIntent",
    *,
    url: str,
    version: str,
    method: str = "GET",
    client_version: "str | None" = None,
    location: "str | None" = None,
    encrypt_history: bool = False,
    clear_history: bool = False,
    portal: "BlockingPortal | None" = None,
) -> "PageProps[Any] | VersionMismatch":
    """Assemble the response for a component, or signal a stale client.

    The version check runs first, so no resolver is invoked for a request that is answered
    with a reload.

    Args:
        component: The component to render.
        props: The assembled prop bag.
        intent: The parsed request intent.
        url: The page URL.
        version: The server asset version.
        method: The request method.
        client_version: The asset version sent by the client.
        location: URL the client reloads on a version mismatch. Defaults to ``url``.
        encrypt_history: Whether the client should encrypt the history entry.
        clear_history: Whether the client should clear its encrypted history.
        portal: Optional portal for async resolvers.

    Returns:
        The page object, or a :class:`VersionMismatch`.
    """
    if is_version_mismatch(method, intent, client_version, version):
        return VersionMismatch(location=location or url)
    return build_page(
        component,
        props,
        intent,
        url=url,
        version=version,
        encrypt_history=encrypt_history,
        clear_history=clear_history,
        portal=portal,
    )


def _get_relative_url(request: "Request[Any, Any, Any]") -> str:
    """Return the relative URL including query string for Inertia page props.

    The ``url`` page field keeps the query so that page state (filters, pagination) survives a refresh.

    Returns:
        The path with query string if present, e.g., ``/reports?page=1&status=active``.
    """
    path = request.url.path
    query = request.url.query
    return f"{path}?{query}" if query else path


def _get_inertia_details(request: "Request[Any, Any, Any]") -> "InertiaDetails":
    if isinstance(request, InertiaRequest):
        return request.inertia
    return InertiaDetails(request)


def _is_external_url(request: "Request[Any, Any, Any]", url: str) -> bool:
    """Return True when ``url`` is absolute and points at another origin than the request.

    Returns:
        True for an external http(s) URL.
    """
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"}:
        return False
    base = urlparse(str(request.base_url))
    return (parsed.scheme, parsed.netloc) != (base.scheme, base.netloc)


def _get_back_url(request: "Request[Any, Any, Any]") -> str:
    return _get_inertia_details(request).referer or "/"


def _redirect_status(method: str, status_code: int) -> int:
    if status_code == HTTP_302_FOUND and method.upper() in _SEE_OTHER_METHODS:
        return HTTP_303_SEE_OTHER
    return status_code


class InertiaResponse(Response[T]):
    """Inertia Response"""

    def __init__(
        self,
        content: T,
        *,
        template_name: "str | None" = None,
        template_str: "str | None" = None,
        background: "BackgroundTask | BackgroundTasks | None" = None,
        context: "dict[str, Any] | None" = None,
        cookies: "ResponseCookies | None" = None,
        encoding: "str" = "utf-8",
        headers: "ResponseHeaders | None" = None,
        media_type: "MediaType | str | None" = None,
        status_code: "int" = HTTP_200_OK,
        type_encoders: "TypeEncodersMap | None" = None,
        encrypt_history: "bool | None" = None,
        clear_history: bool = False,
    ) -> None:
        """Handle the rendering of a given prop bag into an Inertia page.

        Args:
            content: The prop bag. Any other value is sent as the ``content`` prop.
            template_name: Path-like name for the root template, e.g. ``index.html``.
                Defaults to ``InertiaConfig.root_template``.
            template_str: A string representing the root template.
            background: A :class:`BackgroundTask <.background_tasks.BackgroundTask>` instance or
                :class:`BackgroundTasks <.background_tasks.BackgroundTasks>` to execute after the response is finished.
                Defaults to ``None``.
            context: Extra key/value pairs passed to the template engine's render method.
            cookies: A list of :class:`Cookie <.datastructures.Cookie>` instances to be set under the response
                ``Set-Cookie`` header.
            encoding: Content encoding
            headers: A string keyed dictionary of response headers. Header keys are insensitive.
            media_type: A string or member of the :class:`MediaType <.enums.MediaType>` enum.
            status_code: A value for the response HTTP status code.
            type_encoders: A mapping of types to callables that transform them into types supported for serialization.
            encrypt_history: Encrypt the history entry of this page. If None, falls back to the session
                flag set by :func:`~litestar_inertia.helpers.encrypt_history`, then to ``InertiaConfig.encrypt_history``.
            clear_history: Clear previously encrypted history state, e.g. on logout.

        Raises:
            ValueError: If both template_name and template_str are provided.
        """
        if template_name and template_str:
            msg = "Either template_name or template_str must be provided, not both."
            raise ValueError(msg)
        self.content = content
        self.background = background
        self.cookies: list[Cookie] = (
            [Cookie(key=key, value=value) for key, value in cookies.items()]
            if isinstance(cookies, Mapping)
            else list(cookies or [])
        )
        self.encoding = encoding
        self.headers: dict[str, Any] = (
            dict(headers) if isinstance(headers, Mapping) else {h.name: h.value for h in headers or {}}
        )
        self.media_type = media_type
        self.status_code = status_code
        self.response_type_encoders = {**(self.type_encoders or {}), **(type_encoders or {})}
        self.context = context or {}
        self.template_name = template_name
        self.template_str = template_str
        self.encrypt_history = encrypt_history
        self.clear_history = clear_history

    def create_template_context(
        self,
        request: "Request[UserT, AuthT, StateT]",
        page_props: "PageProps[Any]",
        type_encoders: "TypeEncodersMap | None" = None,
    ) -> "dict[str, Any]":
        """Create a context object for the template.

        Args:
            request: A :class:`Request <.connection.Request>` instance.
            page_props: The page object.
            type_encoders: A mapping of types to callables that transform them into types supported for serialization.

        Returns:
            A dictionary holding the template context
        """
        csrf_token = value_or_default(ScopeState.from_scope(request.scope).csrf_token, "")
        page = page_props.to_dict()
        inertia_props = self.render(page, MediaType.JSON, get_serializer(type_encoders)).decode()
        return {
            **self.context,
            "page": page,
            "inertia": inertia_props,
            "request": request,
            "csrf_input": f'<input type="hidden" name="_csrf_token" value="{csrf_token}" />',
        }

    def _build_prop_bag(self, request: "Request[UserT, AuthT, StateT]", component: str) -> "dict[str, Any]":
        """Merge the shared props with the handler's content.

        Returns:
            The prop bag, handler props last.
        """
        props = get_shared_props(request, component)
        if isinstance(self.content, Mapping):
            props.update(cast("Mapping[str, Any]", self.content))
        elif self.content is not None:
            props["content"] = self.content
        return props

    def _history_flags(
        self, request: "Request[UserT, AuthT, StateT]", inertia_plugin: "InertiaPlugin"
    ) -> "tuple[bool, bool]":
        """Return the ``(encrypt_history, clear_history)`` flags of this response.

        Session flags are consumed even when the response overrides them.
        """
        session_encrypt: "bool | None" = None
        session_clear = False
        with contextlib.suppress(AttributeError, ImproperlyConfiguredException):
            session_encrypt = request.session.pop(ENCRYPT_HISTORY_SESSION_KEY, None)  # pyright: ignore[reportUnknownMemberType]
            session_clear = bool(request.session.pop(CLEAR_HISTORY_SESSION_KEY, False))  # pyright: ignore[reportUnknownMemberType]

        encrypt_history = self.encrypt_history
        if encrypt_history is None:
            encrypt_history = session_encrypt if session_encrypt is not None else inertia_plugin.config.encrypt_history
        return bool(encrypt_history), self.clear_history or session_clear

    def _render_template(
        self,
        request: "Request[UserT, AuthT, StateT]",
        page_props: "PageProps[Any]",
        type_encoders: "TypeEncodersMap | None",
        inertia_plugin: "InertiaPlugin",
    ) -> bytes:
        """Render the root template to bytes.

        Raises:
            ImproperlyConfiguredException: If the template engine is not configured.

        Returns:
            The rendered template as bytes.
        """
        template_engine = request.app.template_engine  # pyright: ignore[reportUnknownVariableType,reportUnknownMemberType]
        if not template_engine:
            msg = "Template engine is not configured"
            raise ImproperlyConfiguredException(msg)

        context = self.create_template_context(request, page_props, type_encoders)  # pyright: ignore[reportUnknownMemberType]
        if self.template_str is not None:
            return template_engine.render_string(self.template_str, context).encode(self.encoding)  # pyright: ignore[reportUnknownMemberType,reportUnknownVariableType,reportReturnType]

        template_name = self.template_name or inertia_plugin.config.root_template
        template = template_engine.get_template(template_name)  # pyright: ignore[reportUnknownMemberType,reportUnknownVariableType]
        return template.render(**context).encode(self.encoding)  # pyright: ignore[reportUnknownVariableType,reportUnknownMemberType,reportReturnType]

    def _determine_media_type(self, media_type: "MediaType | str | None") -> "MediaType | str":
        if media_type:
            return media_type
        if self.template_name:
            suffixes = PurePath(self.template_name).suffixes
            for suffix in suffixes:
                if type_ := guess_type(f"name{suffix}")[0]:
                    return type_
            return MediaType.TEXT
        return MediaType.HTML

    def to_asgi_response(
        self,
        app: "Litestar | None",
        request: "Request[UserT, AuthT, StateT]",
        *,
        background: "BackgroundTask | BackgroundTasks | None" = None,
        cookies: "Iterable[Cookie] | None" = None,
        encoded_headers: "Iterable[tuple[bytes, bytes]] | None" = None,
        headers: "dict[str, str] | None" = None,
        is_head_response: "bool" = False,
        media_type: "MediaType | str | None" = None,
        status_code: "int | None" = None,
        type_encoders: "TypeEncodersMap | None" = None,
    ) -> "ASGIResponse":
        details = _get_inertia_details(cast("Request[Any, Any, Any]", request))
        headers = {**headers, **self.headers} if headers is not None else self.headers
        cookies = self.cookies if cookies is None else itertools.chain(self.cookies, cookies)
        type_encoders = (
            {**type_encoders, **(self.response_type_encoders or {})} if type_encoders else self.response_type_encoders
        )
        component = details.route_component

        if component is None:
            resolved_media_type = get_enum_string_value(self.media_type or media_type or MediaType.JSON)
            return ASGIResponse(
                background=self.background or background,
                body=self.render(self.content, resolved_media_type, get_serializer(type_encoders)),
                cookies=cookies,
                encoded_headers=encoded_headers,
                encoding=self.encoding,
                headers=headers,
                is_head_response=is_head_response,
                media_type=resolved_media_type,
                status_code=self.status_code or status_code,
            )

        inertia_plugin = request.app.plugins.get(InertiaPlugin)
        intent = details.intent
        version = inertia_plugin.version

        # Checked before the prop bag is built so that session state survives the reload.
        if is_version_mismatch(request.method, intent, details.version, version):
            return InertiaExternalRedirect(request, redirect_to=str(request.url)).to_asgi_response(
                app, request, is_head_response=is_head_response
            )

        encrypt_history, clear_history = self._history_flags(request, inertia_plugin)
        page = build_page(
            component,
            self._build_prop_bag(request, component),
            intent,
            url=_get_relative_url(cast("Request[Any, Any, Any]", request)),
            version=version,
            encrypt_history=encrypt_history,
            clear_history=clear_history,
            portal=inertia_plugin.portal,
        )

        if intent.is_ajax:
            headers.update({"Vary": InertiaHeaders.ENABLED.value, **get_headers(InertiaHeaderType(enabled=True))})
            resolved_media_type = get_enum_string_value(self.media_type or media_type or MediaType.JSON)
            body = self.render(page.to_dict(), resolved_media_type, get_serializer(type_encoders))
        else:
            headers.update({"Vary": InertiaHeaders.ENABLED.value})
            resolved_media_type = self._determine_media_type(media_type or MediaType.HTML)
            body = self._render_template(request, page, type_encoders, inertia_plugin)

        return ASGIResponse(  # pyright: ignore[reportUnknownMemberType]
            background=self.background or background,
            body=body,
            cookies=cookies,
            encoded_headers=encoded_headers,
            encoding=self.encoding,
            headers=headers,
            is_head_response=is_head_response,
            media_type=resolved_media_type,
            status_code=self.status_code or status_code,
        )


class InertiaExternalRedirect(Response[Any]):
    """Full-page visit via Inertia protocol (409 + X-Inertia-Location).

    The client answers this response with ``window.location`` navigation, which is how it
    reaches other origins and how it picks up new assets after a version change.

    Note:
        Request cookies are intentionally NOT passed to the response to prevent
        cookie leakage in redirect responses.
    """

    def __init__(self, request: "Request[Any, Any, Any]", redirect_to: "str", **kwargs: "Any") -> None:
        """Initialize external redirect with 409 status and X-Inertia-Location header.

        Args:
            request: The request object.
            redirect_to: The URL to visit (can be external).
            **kwargs: Additional keyword arguments passed to the Response constructor.
        """
        super().__init__(
            content=b"",
            status_code=HTTP_409_CONFLICT,
            headers=get_headers(InertiaHeaderType(location=quote(redirect_to, safe=_LOCATION_SAFE_CHARS))),
            **kwargs,
        )


class InertiaRedirect(Redirect):
    """Redirect to a specified URL.

    A ``302`` sent in answer to a PUT, PATCH or DELETE request is upgraded to ``303`` so the
    browser follows it with a GET instead of repeating the request.

    Note:
        Request cookies are intentionally NOT passed to the response to prevent
        cookie leakage in redirect responses.
    """

    def __init__(
        self,
        request: "Request[Any, Any, Any]",
        redirect_to: "str",
        status_code: int = HTTP_302_FOUND,
        **kwargs: "Any",
    ) -> None:
        """Initialize the redirect.

        Args:
            request: The request object.
            redirect_to: The URL to redirect to.
            status_code: The redirect status code.
            **kwargs: Additional keyword arguments passed to the Redirect constructor.
        """
        super().__init__(  # pyright: ignore[reportUnknownMemberType]
            path=redirect_to,
            status_code=_redirect_status(request.method, status_code),
            **kwargs,
        )


class InertiaBack(InertiaRedirect):
    """Redirect back to the previous page using the Referer header.

    A missing Referer redirects to ``/``.
    """

    def __init__(self, request: "Request[Any, Any, Any]", status_code: int = HTTP_302_FOUND, **kwargs: "Any") -> None:
        """Initialize back redirect.

        Args:
            request: The request object.
            status_code: The redirect status code.
            **kwargs: Additional keyword arguments passed to the Redirect constructor.
        """
        super().__init__(request, redirect_to=_get_back_url(request), status_code=status_code, **kwargs)


def redirect(
    request: "Request[Any, Any, Any]",
    redirect_to: str,
    status_code: int = HTTP_302_FOUND,
    **kwargs: "Any",
) -> "InertiaRedirect | InertiaExternalRedirect":
    """Redirect an Inertia visit.

    The Inertia client follows redirects through XHR, which cannot cross origins. A redirect
    to another origin sent in answer to an Inertia request is therefore turned into a
    full-page visit.

    Args:
        request: The request object.
        redirect_to: The URL to redirect to.
        status_code: The redirect status code.
        **kwargs: Additional keyword arguments passed to the response constructor.

    Returns:
        An :class:`InertiaExternalRedirect` for an external URL under an Inertia request,
        else an :class:`InertiaRedirect`.
    """
    if _get_inertia_details(request) and _is_external_url(request, redirect_to):
        return InertiaExternalRedirect(request, redirect_to=redirect_to, **kwargs)
    return InertiaRedirect(request, redirect_to=redirect_to, status_code=status_code, **kwargs)


def back(
    request: "Request[Any, Any, Any]",
    status_code: int = HTTP_302_FOUND,
    **kwargs: "Any",
) -> "InertiaBack | InertiaExternalRedirect":
    """Redirect to the page the request came from.

    Like :func:`redirect`, a Referer on another origin is turned into a full-page visit when the
    request comes from the Inertia client.

    Returns:
        An :class:`InertiaExternalRedirect` for a cross-origin Referer under an Inertia request,
        else an :class:`InertiaBack`.
    """
    redirect_to = _get_back_url(request)
    if _get_inertia_details(request) and _is_external_url(request, redirect_to):
        return InertiaExternalRedirect(request, redirect_to=redirect_to, **kwargs)
    return InertiaBack(request, status_code=status_code, **kwargs)
