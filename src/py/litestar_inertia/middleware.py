from typing import TYPE_CHECKING, Any

from litestar.middleware import AbstractMiddleware

from litestar_inertia.request import InertiaRequest
from litestar_inertia.response import InertiaExternalRedirect, is_version_mismatch

if TYPE_CHECKING:
    from litestar.types import ASGIApp, Receive, Scope, Send

    from litestar_inertia.plugin import InertiaPlugin

__all__ = ("InertiaMiddleware", "redirect_on_asset_version_mismatch")


def redirect_on_asset_version_mismatch(request: "InertiaRequest[Any, Any, Any]") -> "InertiaExternalRedirect | None":
    """Return redirect response when client and server asset versions differ.

    Only Inertia GET requests are checked; other methods pass through so that form
    submissions are never discarded.

    Returns:
        An InertiaExternalRedirect to the current URL when versions differ, otherwise None.
    """
    inertia_plugin: "InertiaPlugin" = request.app.plugins.get("InertiaPlugin")
    if not is_version_mismatch(request.method, request.inertia.intent, request.inertia_version, inertia_plugin.version):
        return None
    request.logger.debug(
        "Inertia asset version mismatch (client %r, server %r), reloading %s",
        request.inertia_version,
        inertia_plugin.version,
        request.url,
    )
    return InertiaExternalRedirect(request, redirect_to=str(request.url))


class InertiaMiddleware(AbstractMiddleware):
    """Middleware for handling Inertia.js protocol requirements.

    Answers stale Inertia visits with ``409 Conflict`` and an ``X-Inertia-Location`` header
    pointing at the requested URL, so the client performs a full reload and picks up the new assets.
    The route handler is not called for such requests.
    """

    def __init__(self, app: "ASGIApp") -> None:
        super().__init__(app)
        self.app = app

    async def __call__(self, scope: "Scope", receive: "Receive", send: "Send") -> None:
        request: InertiaRequest[Any, Any, Any] = InertiaRequest(scope=scope)
        redirect = redirect_on_asset_version_mismatch(request)
        if redirect is not None:
            response = redirect.to_asgi_response(app=None, request=request)  # pyright: ignore[reportUnknownMemberType]
            await response(scope, receive, send)
        else:
            await self.app(scope, receive, send)
