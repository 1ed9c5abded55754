import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from anyio.from_thread import start_blocking_portal
from litestar.plugins import InitPluginProtocol

from litestar_inertia.shared import SharedProps

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from anyio.from_thread import BlockingPortal
    from litestar import Litestar
    from litestar.config.app import AppConfig

    from litestar_inertia.config import InertiaConfig

__all__ = ("InertiaPlugin",)

logger = logging.getLogger("litestar_inertia")


class InertiaPlugin(InitPluginProtocol):
    """Inertia plugin.

    This plugin configures Litestar for Inertia.js support, including:
    - Session middleware requirement validation
    - Exception handler for Inertia responses
    - InertiaRequest and InertiaResponse as default classes
    - The asset version check middleware
    - A type encoder for props returned outside of an Inertia page
    - The ``inertia_root`` Jinja template callable

    Shared props and composers are registered on :attr:`shared`:

    Example::

        from litestar_inertia import InertiaConfig, InertiaPlugin

        inertia = InertiaPlugin(InertiaConfig(version="1.0"))
        inertia.shared.share("app_name", "Acme")
        inertia.shared.composer(["Users/Index", "Users/Show"], lambda connection: {"roles": load_roles()})

        app = Litestar(
            plugins=[inertia],
            middleware=[ServerSideSessionConfig().middleware],
        )

    BlockingPortal Behavior:
        The plugin creates a BlockingPortal during its lifespan for executing
        ``async def`` prop resolvers while the (synchronous) response is assembled.
        The portal is shared across all requests during the app's lifetime. Outside
        of the lifespan a short-lived portal is started per async resolver.
    """

    __slots__ = ("_portal", "_version", "config", "shared")

    def __init__(self, config: "InertiaConfig", shared: "SharedProps | None" = None) -> "None":
        """Initialize the plugin with Inertia configuration.

        Args:
            config: The Inertia configuration.
            shared: Optional registry of shared props and composers. A new one is created when omitted.
        """
        self.config = config
        self.shared = shared if shared is not None else SharedProps()
        self._version: "str | None" = None
        self._portal: "BlockingPortal | None" = None  # pyright: ignore[reportInvalidTypeForm]

    @property
    def version(self) -> str:
        """Return the asset version, computed once.

        Returns:
            The asset version.
        """
        if self._version is None:
            self._version = self.config.resolve_version()
            logger.debug("Inertia asset version is %r", self._version)
        return self._version

    @asynccontextmanager
    async def lifespan(self, app: "Litestar") -> "AsyncGenerator[None, None]":
        """Lifespan to ensure the event loop is available.

        Args:
            app: The :class:`Litestar <litestar.app.Litestar>` instance.

        Yields:
            An asynchronous context manager.
        """
        with start_blocking_portal() as portal:
            self._portal = portal
            try:
                yield
            finally:
                self._portal = None

    @property
    def portal(self) -> "BlockingPortal | None":
        """Return the blocking portal used for async prop resolution.

        Returns:
            The portal of the running lifespan, or None outside of it. Async resolvers then start
            a short-lived portal of their own.
        """
        return self._portal

    def on_app_init(self, app_config: "AppConfig") -> "AppConfig":
        """Configure application for use with Inertia.

        Args:
            app_config: The :class:`AppConfig <litestar.config.app.AppConfig>` instance.

        Raises:
            ImproperlyConfiguredException: If the Inertia plugin is not properly configured.

        Returns:
            The :class:`AppConfig <litestar.config.app.AppConfig>` instance.
        """

        from litestar.exceptions import HTTPException, ImproperlyConfiguredException
        from litestar.middleware import DefineMiddleware
        from litestar.middleware.session import SessionMiddleware
        from litestar.security.session_auth.middleware import MiddlewareWrapper
        from litestar.utils.predicates import is_class_and_subclass

        from litestar_inertia.exception_handler import exception_to_http_response
        from litestar_inertia.middleware import InertiaMiddleware
        from litestar_inertia.props import Prop
        from litestar_inertia.request import InertiaRequest
        from litestar_inertia.resolution import resolve_value
        from litestar_inertia.response import InertiaBack, InertiaExternalRedirect, InertiaRedirect, InertiaResponse

        for mw in app_config.middleware:
            if isinstance(mw, DefineMiddleware) and is_class_and_subclass(
                mw.middleware, (MiddlewareWrapper, SessionMiddleware)
            ):
                break
        else:
            msg = "The Inertia plugin require a session middleware."
            raise ImproperlyConfiguredException(msg)

        app_config.exception_handlers.update(  # pyright: ignore[reportUnknownMemberType]
            {Exception: exception_to_http_response, HTTPException: exception_to_http_response}
        )
        app_config.request_class = InertiaRequest
        app_config.response_class = InertiaResponse
        app_config.middleware.append(InertiaMiddleware)
        app_config.signature_types.extend(
            [InertiaRequest, InertiaResponse, InertiaBack, InertiaRedirect, InertiaExternalRedirect, Prop]
        )
        app_config.type_encoders = {
            Prop: lambda val: resolve_value(val, portal=self.portal),
            **(app_config.type_encoders or {}),
        }

        self._configure_jinja_callables(app_config)
        app_config.lifespan.append(self.lifespan)  # pyright: ignore[reportUnknownMemberType]
        return app_config

    def _configure_jinja_callables(self, app_config: "AppConfig") -> None:
        """Register the ``inertia_root`` Jinja2 template callable.

        Args:
            app_config: The Litestar application configuration.
        """
        from litestar.contrib.jinja import JinjaTemplateEngine

        from litestar_inertia.helpers import render_inertia_root

        template_config = app_config.template_config  # pyright: ignore[reportUnknownMemberType,reportUnknownVariableType]
        if template_config is None:
            logger.warning("No template config found, Inertia pages can only be served to Inertia visits")
            return
        if isinstance(
            template_config.engine_instance,  # pyright: ignore[reportUnknownMemberType]
            JinjaTemplateEngine,
        ):
            engine = template_config.engine_instance  # pyright: ignore[reportUnknownMemberType]
            engine.register_template_callable(key="inertia_root", template_callable=render_inertia_root)

    def flush(self) -> None:
        """Forget every shared prop and composer, and the cached asset version."""
        self.shared.flush()
        self._version = None
