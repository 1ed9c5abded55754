"""Inertia.js configuration."""

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

__all__ = ("DEFAULT_VERSION", "InertiaConfig")

logger = logging.getLogger("litestar_inertia")

DEFAULT_VERSION = "1.0"
"""Asset version used when neither an explicit version nor a manifest is available."""


def empty_dict_factory() -> "dict[str, Any]":
    """Return an empty ``dict[str, Any]``.

    Returns:
        An empty dictionary.
    """
    return {}


def empty_set_factory() -> "set[str]":
    """Return an empty ``set[str]``.

    Returns:
        An empty set.
    """
    return set()


@dataclass
class InertiaConfig:
    """Configuration for InertiaJS support.

    Attributes:
        root_template: Name of the root template to use.
        component_opt_keys: Identifiers for getting inertia component from route opts.
        version: Explicit asset version.
        manifest_path: Build manifest hashed into the asset version when ``version`` is not set.
        root_element_id: Id of the element that receives the page object.
        encrypt_history: Enable history encryption for every response.
        redirect_unauthorized_to: Path for unauthorized request redirects.
        redirect_404: Path for 404 request redirects.
        extra_static_page_props: Static props added to every page response.
        extra_session_page_props: Session keys to include in page props.
    """

    root_template: str = "index.html"
    """Name of the root template to use.

    This must be a path that is found by the application's template config.
    """
    component_opt_keys: "tuple[str, ...]" = ("component", "page")
    """Identifiers to use on routes to get the inertia component to render.

    The first key found in the route handler opts will be used. This allows
    semantic flexibility - use "component" or "page" depending on preference.

    Example:
        # All equivalent:
        @get("/", component="Home")
        @get("/", page="Home")

        # Custom keys:
        InertiaConfig(component_opt_keys=("view", "component", "page"))
    """
    version: "str | None" = None
    """Asset version sent to the client. Takes precedence over ``manifest_path``."""
    manifest_path: "Path | str | None" = None
    """Path of the asset build manifest (e.g. ``public/build/.vite/manifest.json``).

    When set and ``version`` is not, the asset version is the md5 digest of the file so that
    every new build forces clients to reload. A missing file falls back to ``DEFAULT_VERSION``.
    """
    root_element_id: str = "app"
    """Id of the root element rendered by the ``inertia_root`` template callable."""
    encrypt_history: bool = False
    """Enable browser history encryption globally.

    When True, all Inertia responses will include `encryptHistory: true`
    in the page object. Individual responses can override this setting.

    See: https://inertiajs.com/history-encryption
    """
    redirect_unauthorized_to: "str | None" = None
    """Optionally supply a path where unauthorized requests should redirect."""
    redirect_404: "str | None" = None
    """Optionally supply a path where 404 requests should redirect."""
    extra_static_page_props: "dict[str, Any]" = field(default_factory=empty_dict_factory)
    """A dictionary of values to automatically add in to page props on every response."""
    extra_session_page_props: "set[str]" = field(default_factory=empty_set_factory)
    """Session keys copied into page props when present in the session."""

    def __post_init__(self) -> None:
        if isinstance(self.manifest_path, str):
            self.manifest_path = Path(self.manifest_path)

    def resolve_version(self) -> str:
        """Return the asset version.

        Returns:
            The explicit version, else the manifest digest, else ``DEFAULT_VERSION``.
        """
        if self.version is not None:
            return self.version
        if isinstance(self.manifest_path, Path):
            if self.manifest_path.is_file():
                return hashlib.md5(self.manifest_path.read_bytes(), usedforsecurity=False).hexdigest()
            logger.warning(
                "Inertia manifest %s was not found, using default asset version %r", self.manifest_path, DEFAULT_VERSION
            )
        return DEFAULT_VERSION
