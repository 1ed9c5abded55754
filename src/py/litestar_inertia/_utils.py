from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from litestar_inertia.types import InertiaHeaderType


class InertiaHeaders(str, Enum):
    """Enum for Inertia Headers.

    See: https://inertiajs.com/the-protocol

    This includes both core protocol headers and v2 extensions (partial excludes, once props,
    reset, error bags and prefetch detection).
    """

    ENABLED = "X-Inertia"
    VERSION = "X-Inertia-Version"
    LOCATION = "X-Inertia-Location"
    REFERER = "Referer"

    PARTIAL_DATA = "X-Inertia-Partial-Data"
    PARTIAL_COMPONENT = "X-Inertia-Partial-Component"
    PARTIAL_EXCEPT = "X-Inertia-Partial-Except"
    EXCEPT_ONCE_PROPS = "X-Inertia-Except-Once-Props"

    RESET = "X-Inertia-Reset"
    ERROR_BAG = "X-Inertia-Error-Bag"

    PURPOSE = "Purpose"


def split_header_list(value: "str | None") -> "frozenset[str]":
    """Parse a comma separated header value into a set of names.

    Blank segments are dropped, so ``None``, ``""`` and ``" , "`` all yield an empty set.

    Args:
        value: The raw header value.

    Returns:
        The set of non-empty, whitespace-stripped names.
    """
    if not value:
        return frozenset()
    return frozenset(part for part in (segment.strip() for segment in value.split(",")) if part)


def get_enabled_header(enabled: bool = True) -> "dict[str, Any]":
    """True if inertia is enabled.

    Args:
        enabled: Whether inertia is enabled.

    Returns:
        The headers for inertia.
    """

    return {InertiaHeaders.ENABLED.value: "true" if enabled else "false"}


def get_location_header(location: str) -> "dict[str, Any]":
    """Return the header that makes the client perform a full visit.

    Args:
        location: The URL to visit.

    Returns:
        The headers for inertia.
    """
    return {InertiaHeaders.LOCATION.value: location}


def get_headers(inertia_headers: "InertiaHeaderType") -> "dict[str, Any]":
    """Return headers for Inertia requests and responses.

    Args:
        inertia_headers: The inertia headers.

    Raises:
        ValueError: If the inertia headers are None.

    Returns:
        The headers for inertia.
    """
    if not inertia_headers:
        msg = "Value for inertia_headers cannot be None."
        raise ValueError(msg)
    inertia_headers_dict: "dict[str, Callable[..., dict[str, Any]]]" = {
        "enabled": get_enabled_header,
        "location": get_location_header,
    }

    header: "dict[str, Any]" = {}
    response: "dict[str, Any]"
    key: "str"
    value: "Any"

    for key, value in inertia_headers.items():
        if value is not None:
            response = inertia_headers_dict[key](value)
            header.update(response)
    return header
