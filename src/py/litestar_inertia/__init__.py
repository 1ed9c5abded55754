from litestar_inertia import helpers
from litestar_inertia.config import InertiaConfig
from litestar_inertia.exception_handler import create_inertia_exception_response, exception_to_http_response
from litestar_inertia.exceptions import LitestarInertiaError, PropConfigurationError
from litestar_inertia.helpers import (
    clear_history,
    encrypt_history,
    error,
    flash,
    get_shared_props,
    render_root_element,
    share,
)
from litestar_inertia.metadata import PropMetadata, extract_metadata
from litestar_inertia.middleware import InertiaMiddleware
from litestar_inertia.plugin import InertiaPlugin
from litestar_inertia.props import Prop, always, deep_merge, defer, lazy, merge, once, optional, prepend
from litestar_inertia.request import InertiaDetails, InertiaHeaders, InertiaRequest, RequestIntent, parse_intent
from litestar_inertia.resolution import resolve_props
from litestar_inertia.response import (
    InertiaBack,
    InertiaExternalRedirect,
    InertiaRedirect,
    InertiaResponse,
    VersionMismatch,
    assemble,
    back,
    build_page,
    redirect,
)
from litestar_inertia.shared import SharedProps
from litestar_inertia.types import PageProps, PropKind

__all__ = (
    "InertiaBack",
    "InertiaConfig",
    "InertiaDetails",
    "InertiaExternalRedirect",
    "InertiaHeaders",
    "InertiaMiddleware",
    "InertiaPlugin",
    "InertiaRedirect",
    "InertiaRequest",
    "InertiaResponse",
    "LitestarInertiaError",
    "PageProps",
    "Prop",
    "PropConfigurationError",
    "PropKind",
    "PropMetadata",
    "RequestIntent",
    "SharedProps",
    "VersionMismatch",
    "always",
    "assemble",
    "back",
    "build_page",
    "clear_history",
    "create_inertia_exception_response",
    "deep_merge",
    "defer",
    "encrypt_history",
    "error",
    "exception_to_http_response",
    "extract_metadata",
    "flash",
    "get_shared_props",
    "helpers",
    "lazy",
    "merge",
    "once",
    "optional",
    "parse_intent",
    "prepend",
    "redirect",
    "render_root_element",
    "resolve_props",
    "share",
)
