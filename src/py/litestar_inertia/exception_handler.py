import re
from http import HTTPStatus
from typing import TYPE_CHECKING, Any, cast
from urllib.parse import quote, urlparse, urlunparse

from litestar import MediaType
from litestar.connection import Request
from litestar.exceptions import (
    HTTPException,
    InternalServerException,
    NotAuthorizedException,
    NotFoundException,
    PermissionDeniedException,
)
from litestar.exceptions.responses import (
    create_debug_response,  # pyright: ignore[reportUnknownVariableType]
    create_exception_response,  # pyright: ignore[reportUnknownVariableType]
)
from litestar.repository.exceptions import (
    ConflictError,  # pyright: ignore[reportUnknownVariableType,reportAttributeAccessIssue]
    NotFoundError,  # pyright: ignore[reportUnknownVariableType,reportAttributeAccessIssue]
    RepositoryError,  # pyright: ignore[reportUnknownVariableType,reportAttributeAccessIssue]
)
from litestar.response import Response
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_404_NOT_FOUND,
    HTTP_405_METHOD_NOT_ALLOWED,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from litestar_inertia.helpers import error, flash
from litestar_inertia.request import InertiaRequest
from litestar_inertia.response import InertiaResponse, back, redirect

if TYPE_CHECKING:
    from litestar.connection.base import AuthT, StateT, UserT

    from litestar_inertia.plugin import InertiaPlugin

__all__ = ("create_inertia_exception_response", "exception_to_http_response")

FIELD_ERR_RE = re.compile(r"field `(.+)`$")


class _HTTPConflictException(HTTPException):
    """Request conflict with the current state of the target resource."""

    status_code: int = HTTP_409_CONFLICT


def _is_inertia_route(request: "Request[Any, Any, Any]") -> bool:
    is_inertia_header = bool(request.headers.get("x-inertia"))
    if isinstance(request, InertiaRequest):
        return request.inertia_enabled or request.is_inertia or is_inertia_header
    return is_inertia_header


def exception_to_http_response(request: "Request[UserT, AuthT, StateT]", exc: "Exception") -> "Response[Any]":
    """Handler for all exceptions raised while serving a request.

    Requests that neither target an Inertia route nor come from the Inertia client get
    Litestar's default exception responses.

    Args:
        request: The request object.
        exc: The exception to handle.

    Returns:
        The response object.
    """
    if _is_inertia_route(cast("Request[Any, Any, Any]", request)):
        return create_inertia_exception_response(request, exc)

    if isinstance(exc, HTTPException):
        return cast("Response[Any]", create_exception_response(request, exc))
    if isinstance(exc, NotFoundError):
        http_exc = NotFoundException
    elif isinstance(exc, (RepositoryError, ConflictError)):
        http_exc = _HTTPConflictException  # type: ignore[assignment]
    else:
        http_exc = InternalServerException  # type: ignore[assignment]
    if request.app.debug and http_exc is not NotFoundException:
        return cast("Response[Any]", create_debug_response(request, exc))
    return cast("Response[Any]", create_exception_response(request, http_exc(detail=str(exc.__cause__))))  # pyright: ignore[reportUnknownArgumentType]


def _store_field_error(request: "Request[Any, Any, Any]", extras: "Any", detail: str) -> None:
    """Record the first validation error of ``extras`` as a session error.

    Litestar reports validation failures as a list of ``{"key": ..., "message": ...}`` dicts.
    """
    if not extras or not isinstance(extras, (list, tuple)):
        return
    first_extra = extras[0]  # pyright: ignore[reportUnknownVariableType]
    if not isinstance(first_extra, dict):
        return
    message = cast("dict[str, str]", first_extra)
    key_value = message.get("key")
    default_field = f"root.{key_value}" if key_value is not None else "root"
    error_detail = str(message.get("message", detail) or detail)
    match = FIELD_ERR_RE.search(error_detail)
    field = match.group(1) if match else default_field
    error(request, field, error_detail or detail)


def create_inertia_exception_response(request: "Request[UserT, AuthT, StateT]", exc: "Exception") -> "Response[Any]":
    """Create the inertia exception response.

    - 400 and 422 errors and permission errors are flashed and answered with a redirect back,
      so the form that triggered them can show the errors.
    - 401 errors redirect to ``InertiaConfig.redirect_unauthorized_to`` when set.
    - 404 and 405 errors redirect to ``InertiaConfig.redirect_404`` when set.
    - Anything else is rendered as an Inertia response carrying the status code and message.
      Unhandled (non-HTTP) errors are not flashed, and their text is only exposed in debug mode.

    Args:
        request: The request object.
        exc: The exception to handle.

    Returns:
        The response object.
    """
    connection = cast("Request[Any, Any, Any]", request)
    is_inertia = connection.is_inertia if isinstance(connection, InertiaRequest) else False

    status_code = exc.status_code if isinstance(exc, HTTPException) else HTTP_500_INTERNAL_SERVER_ERROR
    preferred_type = MediaType.JSON if is_inertia else MediaType.HTML
    if isinstance(exc, HTTPException):
        detail = exc.detail
    elif request.app.debug:
        detail = str(exc)
    else:
        detail = HTTPStatus(HTTP_500_INTERNAL_SERVER_ERROR).phrase
    extras: Any = exc.extra if isinstance(exc, HTTPException) else None  # pyright: ignore[reportUnknownMemberType]
    content: "dict[str, Any]" = {"status_code": status_code, "message": detail}
    if extras:
        content["extra"] = extras

    inertia_plugin: "InertiaPlugin | None"
    try:
        inertia_plugin = request.app.plugins.get("InertiaPlugin")
    except KeyError:
        inertia_plugin = None

    flash_succeeded = False
    if detail and isinstance(exc, HTTPException):
        flash_succeeded = flash(connection, detail, category="error")
    _store_field_error(connection, extras, detail)

    if status_code in {HTTP_422_UNPROCESSABLE_ENTITY, HTTP_400_BAD_REQUEST} or isinstance(
        exc, PermissionDeniedException
    ):
        return back(connection)

    if inertia_plugin is None:
        return InertiaResponse[Any](media_type=preferred_type, content=content, status_code=status_code)

    is_unauthorized = status_code == HTTP_401_UNAUTHORIZED or isinstance(exc, NotAuthorizedException)
    redirect_to_login = inertia_plugin.config.redirect_unauthorized_to
    if is_unauthorized and redirect_to_login is not None:
        if request.url.path == redirect_to_login:
            return back(connection)
        if not flash_succeeded and detail:
            parsed = urlparse(redirect_to_login)
            error_param = f"error={quote(detail, safe='')}"
            query = f"{parsed.query}&{error_param}" if parsed.query else error_param
            redirect_to_login = urlunparse(parsed._replace(query=query))
        return redirect(connection, redirect_to_login)

    redirect_404 = inertia_plugin.config.redirect_404
    if status_code in {HTTP_404_NOT_FOUND, HTTP_405_METHOD_NOT_ALLOWED} and (
        redirect_404 is not None and request.url.path != redirect_404
    ):
        return redirect(connection, redirect_404)

    return InertiaResponse[Any](media_type=preferred_type, content=content, status_code=status_code)
