"""Capability interfaces for builders and entities.

A builder implements any subset of the hook protocols; the copier checks each
capability when the builder is registered.
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from gtfs_copier.errors import EntityError
from gtfs_copier.geom.xy import Point
from gtfs_copier.gtfs.models import Entity

if TYPE_CHECKING:
    from gtfs_copier.copier.copier import Copier
    from gtfs_copier.copier.entity_map import EntityMap
    from gtfs_copier.copier.geomcache import GeomCache


@runtime_checkable
class AfterValidator(Protocol):
    """Called for each validated entity, before identifiers are rewritten."""

    def after_validator(self, ent: Entity, emap: "EntityMap") -> None: ...


@runtime_checkable
class AfterWrite(Protocol):
    """Called for each entity after it is written, with its final identifier."""

    def after_write(self, eid: str, ent: Entity, emap: "EntityMap") -> None: ...


@runtime_checkable
class Finalizer(Protocol):
    """Called once after the source is exhausted; may write derived entities."""

    def finalize(self, copier: "Copier") -> None: ...


@runtime_checkable
class CanShareGeomCache(Protocol):
    """Receives the run's geometry cache at registration."""

    def set_geom_cache(self, cache: "GeomCache") -> None: ...


@runtime_checkable
class HasPointGeometry(Protocol):
    def point(self) -> Point | None: ...


@runtime_checkable
class HasFeedVersionID(Protocol):
    def set_feed_version_id(self, feed_version_id: int) -> None: ...


@runtime_checkable
class HasReferences(Protocol):
    """Rewrites references to other entities, returning unresolved references."""

    def update_keys(self, emap: "EntityMap") -> list[EntityError]: ...
