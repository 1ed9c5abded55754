from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from litestar.exceptions import ImproperlyConfiguredException
from markupsafe import Markup

from litestar_inertia._utils import InertiaHeaders

if TYPE_CHECKING:
    from litestar.connection import ASGIConnection

    from litestar_inertia.plugin import InertiaPlugin

__all__ = (
    "clear_history",
    "encrypt_history",
    "error",
    "flash",
    "get_shared_props",
    "render_inertia_root",
    "render_root_element",
    "share",
)

_ERRORS_SESSION_KEY = "_errors"
_MESSAGES_SESSION_KEY = "_messages"
_SHARED_SESSION_KEY = "_shared"
CLEAR_HISTORY_SESSION_KEY = "_inertia_clear_history"
ENCRYPT_HISTORY_SESSION_KEY = "_inertia_encrypt_history"


def _flatten_errors(errors: "Mapping[str, Any]") -> "dict[str, Any]":
    """Keep the first message of every field that collected several."""
    return {
        field: messages[0] if isinstance(messages, (list, tuple)) and messages else messages
        for field, messages in errors.items()
    }


def _current_user(connection: "ASGIConnection[Any, Any, Any, Any]") -> "Any":
    return connection.scope.get("user")


def get_shared_props(
    request: "ASGIConnection[Any, Any, Any, Any]",
    component: "str | None" = None,
) -> "dict[str, Any]":
    """Return the props every page receives before the handler's own props.

    The bag starts with ``errors``, ``flash`` and ``auth``, followed by the configured static props,
    the plugin's shared props, props shared through the session, configured session keys and
    finally the props returned by the composers of ``component``. Later entries win.

    Args:
        request: The ASGI connection.
        component: The component being rendered, used to select composers.

    Returns:
        Dict[str, Any]: The shared props.

    Note:
        Session errors, flash messages and session-shared props are consumed by this call.
    """
    errors: "dict[str, Any]" = {}
    flash_messages: "dict[str, list[str]]" = {}
    session_shared: "dict[str, Any]" = {}
    session_props: "dict[str, Any]" = {}
    error_bag = request.headers.get(InertiaHeaders.ERROR_BAG.value.lower())
    inertia_plugin = cast("InertiaPlugin", request.app.plugins.get("InertiaPlugin"))

    try:
        errors = _flatten_errors(request.session.pop(_ERRORS_SESSION_KEY, {}))
        for message in cast("list[dict[str, Any]]", request.session.pop(_MESSAGES_SESSION_KEY, [])):
            flash_messages.setdefault(message["category"], []).append(message["message"])
        session_shared = cast("dict[str, Any]", request.session.pop(_SHARED_SESSION_KEY, {}))
        for session_prop in inertia_plugin.config.extra_session_page_props:
            if session_prop in request.session:
                session_props[session_prop] = request.session.get(session_prop)
    except (AttributeError, ImproperlyConfiguredException):
        msg = "Unable to generate all shared props.  A valid session was not found for this request."
        request.logger.warning(msg)

    props: "dict[str, Any]" = {
        "errors": {error_bag: errors} if error_bag is not None and errors else errors,
        "flash": flash_messages,
        "auth": {"user": lambda: _current_user(request)},
    }
    props.update(inertia_plugin.config.extra_static_page_props)
    props.update(inertia_plugin.shared.snapshot())
    props.update(session_shared)
    props.update(session_props)
    if component is not None:
        props.update(inertia_plugin.shared.compose(component, request))
    return props


def share(
    connection: "ASGIConnection[Any, Any, Any, Any]",
    key: "str",
    value: "Any",
) -> "None":
    """Share a value with the next Inertia response through the session.

    Args:
        connection: The ASGI connection.
        key: The key to store the value under.
        value: The value to store.
    """
    try:
        connection.session.setdefault(_SHARED_SESSION_KEY, {}).update({key: value})
    except (AttributeError, ImproperlyConfiguredException):
        msg = "Unable to set `share` session state.  A valid session was not found for this request."
        connection.logger.warning(msg)


def error(
    connection: "ASGIConnection[Any, Any, Any, Any]",
    key: "str",
    message: "str",
) -> "None":
    """Set an error message in the session.

    Args:
        connection: The ASGI connection.
        key: The key to store the error under.
        message: The error message.
    """
    try:
        connection.session.setdefault(_ERRORS_SESSION_KEY, {}).update({key: message})
    except (AttributeError, ImproperlyConfiguredException):
        msg = "Unable to set `error` session state.  A valid session was not found for this request."
        connection.logger.warning(msg)


def flash(
    connection: "ASGIConnection[Any, Any, Any, Any]",
    message: "str",
    category: "str" = "info",
) -> bool:
    """Add a flash message to the session.

    Args:
        connection: The ASGI connection.
        message: The message.
        category: The message category, e.g. ``"success"`` or ``"error"``.

    Returns:
        True if the message was stored, False when no session is available.
    """
    try:
        connection.session.setdefault(_MESSAGES_SESSION_KEY, []).append({"message": message, "category": category})
    except (AttributeError, ImproperlyConfiguredException):
        msg = "Unable to set `flash` session state.  A valid session was not found for this request."
        connection.logger.warning(msg)
        return False
    return True


def clear_history(connection: "ASGIConnection[Any, Any, Any, Any]") -> None:
    """Ask the client to clear its encrypted history on the next Inertia response.

    Typically called on logout. The flag is consumed by the next response.

    Args:
        connection: The ASGI connection.
    """
    try:
        connection.session[CLEAR_HISTORY_SESSION_KEY] = True
    except (AttributeError, ImproperlyConfiguredException):
        msg = "Unable to set `clear_history` session state.  A valid session was not found for this request."
        connection.logger.warning(msg)


def encrypt_history(connection: "ASGIConnection[Any, Any, Any, Any]", encrypt: bool = True) -> None:
    """Encrypt the history state of the next Inertia response.

    Args:
        connection: The ASGI connection.
        encrypt: Whether to encrypt.
    """
    try:
        connection.session[ENCRYPT_HISTORY_SESSION_KEY] = encrypt
    except (AttributeError, ImproperlyConfiguredException):
        msg = "Unable to set `encrypt_history` session state.  A valid session was not found for this request."
        connection.logger.warning(msg)


def render_root_element(page_json: str, element_id: str = "app") -> "Markup":
    """Render the element the Inertia client mounts on.

    Args:
        page_json: The page object encoded as JSON.
        element_id: The element id.

    Returns:
        The element markup, with the page object HTML-escaped into ``data-page``.
    """
    return Markup('<div id="{}" data-page="{}"></div>').format(element_id, page_json)


def render_inertia_root(context: "Mapping[str, Any]", /) -> "Markup":
    """Render the root element from a template context.

    This is a Jinja2 template callable registered as ``inertia_root``.

    Example:
        In a Jinja2 template:
        <body>{{ inertia_root() }}</body>

    Returns:
        The root element markup, or empty markup outside an Inertia response.
    """
    page_json = context.get("inertia")
    if page_json is None:
        return Markup("")
    element_id = "app"
    request = context.get("request")
    if request is not None:
        try:
            inertia_plugin = cast("InertiaPlugin", request.app.plugins.get("InertiaPlugin"))
            element_id = inertia_plugin.config.root_element_id
        except KeyError:
            pass
    return render_root_element(str(page_json), element_id)
