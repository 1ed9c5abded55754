"""Protocol metadata derived from a prop bag.

The extractor scans a prop bag once and records, without resolving anything, which props the
client must load later (deferred groups), merge instead of replace, or may cache (once props).
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from litestar_inertia.props import is_prop
from litestar_inertia.types import OncePropPayload, PropKind

__all__ = ("OncePropEntry", "PropMetadata", "extract_metadata")


@dataclass(frozen=True)
class OncePropEntry:
    """A once prop registration: which prop fills the cache entry and when it expires."""

    prop: str
    expires_at: "int | None" = None

    def to_dict(self) -> "OncePropPayload":
        return {"prop": self.prop, "expiresAt": self.expires_at}


@dataclass(frozen=True)
class PropMetadata:
    """Metadata describing the special props of a bag.

    Attributes:
        deferred_props: Deferred group name to the ordered prop names in that group.
        merge_props: Props (or ``prop.path`` entries) the client appends.
        prepend_props: Props (or ``prop.path`` entries) the client prepends.
        deep_merge_props: Props the client deep merges.
        match_props_on: ``prop.key`` entries used to match merged items.
        once_props: Once cache key to its registration.
    """

    deferred_props: "dict[str, list[str]]" = field(default_factory=dict)
    merge_props: "list[str]" = field(default_factory=list)
    prepend_props: "list[str]" = field(default_factory=list)
    deep_merge_props: "list[str]" = field(default_factory=list)
    match_props_on: "list[str]" = field(default_factory=list)
    once_props: "dict[str, OncePropEntry]" = field(default_factory=dict)

    def once_props_payload(self) -> "dict[str, OncePropPayload]":
        return {cache_key: entry.to_dict() for cache_key, entry in self.once_props.items()}


def extract_metadata(props: "Mapping[str, Any]") -> PropMetadata:
    """Extract Inertia protocol metadata from a prop bag.

    Args:
        props: The prop bag to scan.

    Returns:
        The metadata. Lists keep the order in which props appear in the bag.

    Example::

        props = {
            "users": [...],  # regular prop
            "teams": defer(get_teams, group="attributes"),
            "posts": merge(get_posts, match_on="id"),
            "roles": once(get_roles).as_("roles"),
        }
        meta = extract_metadata(props)
        # meta.deferred_props == {"attributes": ["teams"]}
        # meta.merge_props == ["posts"]
        # meta.match_props_on == ["posts.id"]
        # meta.once_props == {"roles": OncePropEntry(prop="roles", expires_at=None)}
    """
    deferred: "dict[str, list[str]]" = {}
    merge_list: "list[str]" = []
    prepend_list: "list[str]" = []
    deep_merge_list: "list[str]" = []
    match_on: "list[str]" = []
    once: "dict[str, OncePropEntry]" = {}

    for key, value in props.items():
        if not is_prop(value):
            continue

        if value.kind is PropKind.DEFERRED:
            deferred.setdefault(value.group or "default", []).append(key)
            if value.merge_config == "append":
                merge_list.append(key)
            elif value.merge_config == "deep":
                deep_merge_list.append(key)
            if value.is_once:
                once[key] = OncePropEntry(prop=key)

        elif value.kind is PropKind.MERGE:
            if value.strategy == "append":
                if append_paths := value.append_paths:
                    for path, path_match in append_paths.items():
                        merge_list.append(f"{key}.{path}")
                        if path_match:
                            match_on.append(f"{key}.{path}.{path_match}")
                else:
                    merge_list.append(key)
            elif value.strategy == "prepend":
                prepend_list.extend([f"{key}.{path}" for path in value.prepend_paths] or [key])
            elif value.strategy == "deep":
                deep_merge_list.append(key)
            if value.match_key:
                match_on.append(f"{key}.{value.match_key}")
            if value.is_once:
                once[key] = OncePropEntry(prop=key)

        elif value.kind is PropKind.LAZY:
            if value.is_once:
                once[key] = OncePropEntry(prop=key)

        elif value.kind is PropKind.ONCE:
            once[value.cache_key or key] = OncePropEntry(prop=key, expires_at=value.expires_at)

    return PropMetadata(
        deferred_props=deferred,
        merge_props=merge_list,
        prepend_props=prepend_list,
        deep_merge_props=deep_merge_list,
        match_props_on=match_on,
        once_props=once,
    )
