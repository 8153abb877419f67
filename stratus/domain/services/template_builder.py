"""
Template Builder Service

Architectural Intent:
- Resolves declarative criteria (image id, OS family, name pattern, size
  selector, location id, or nothing at all) to exactly one Template
- Deterministic: the same catalog and criteria always give the same Template
- Specifying an image by id yields a Template equal to the one built from any
  other criteria that select the same image

Matching rules:
- Images: filtered by criteria and location compatibility; the preferred
  image is the one with the highest (version, id)
- Location: explicit id, else the image's own location, else the default
  location (most specific of ZONE/REGION/PROVIDER, lowest id). HOST
  locations are only used when asked for explicitly
- Sizes: must support the image architecture and be offered in the location
  or one of its ancestors; ordered by (cores, ram, disk, id). smallest()
  takes the first, fastest()/biggest() the last. smallest() is the default
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from stratus.domain.entities.template import Template, TemplateOptions
from stratus.domain.errors import InvalidLocationHierarchyError, NoMatchError
from stratus.domain.services.location_hierarchy import LocationRegistry
from stratus.domain.value_objects.image import Image, OsFamily
from stratus.domain.value_objects.location import Location, LocationScope
from stratus.domain.value_objects.size import Size

logger = logging.getLogger(__name__)

_DEFAULT_SCOPE_PREFERENCE = (LocationScope.ZONE, LocationScope.REGION, LocationScope.PROVIDER)


@dataclass(frozen=True)
class TemplateCatalog:
    """Snapshot of what a provider offers, used for matching."""
    images: tuple[Image, ...]
    sizes: tuple[Size, ...]
    locations: LocationRegistry

    @classmethod
    def of(
        cls,
        images: Sequence[Image],
        sizes: Sequence[Size],
        locations: Sequence[Location],
    ) -> "TemplateCatalog":
        return cls(tuple(images), tuple(sizes), LocationRegistry(locations))

    def default_location(self) -> Location:
        for scope in _DEFAULT_SCOPE_PREFERENCE:
            candidates = sorted(
                (loc for loc in self.locations if loc.scope is scope), key=lambda l: l.id
            )
            if candidates:
                return candidates[0]
        raise NoMatchError("provider exposes no assignable location")


@dataclass(frozen=True)
class TemplateBuilder:
    catalog: TemplateCatalog
    _image_id: Optional[str] = None
    _os_family: Optional[OsFamily] = None
    _image_name_pattern: Optional[str] = None
    _architecture: Optional[str] = None
    _location_id: Optional[str] = None
    _min_cores: float = 0
    _min_ram: int = 0
    _biggest: bool = False
    _options: TemplateOptions = field(default_factory=TemplateOptions)

    # -- criteria ---------------------------------------------------------

    def image_id(self, image_id: str) -> "TemplateBuilder":
        return replace(self, _image_id=image_id)

    def os_family(self, os_family: OsFamily) -> "TemplateBuilder":
        return replace(self, _os_family=os_family)

    def image_name_matches(self, pattern: str) -> "TemplateBuilder":
        re.compile(pattern)
        return replace(self, _image_name_pattern=pattern)

    def architecture(self, architecture: str) -> "TemplateBuilder":
        return replace(self, _architecture=architecture)

    def location_id(self, location_id: str) -> "TemplateBuilder":
        return replace(self, _location_id=location_id)

    def min_cores(self, cores: float) -> "TemplateBuilder":
        return replace(self, _min_cores=cores)

    def min_ram(self, ram: int) -> "TemplateBuilder":
        return replace(self, _min_ram=ram)

    def smallest(self) -> "TemplateBuilder":
        return replace(self, _biggest=False)

    def fastest(self) -> "TemplateBuilder":
        return replace(self, _biggest=True)

    def biggest(self) -> "TemplateBuilder":
        return replace(self, _biggest=True)

    def options(self, options: TemplateOptions) -> "TemplateBuilder":
        return replace(self, _options=options)

    # -- resolution -------------------------------------------------------

    def build(self) -> Template:
        requested_location = self._resolve_requested_location()
        image = self._resolve_image(requested_location)
        location = requested_location or self._location_for(image)
        size = self._resolve_size(image, location)
        template = Template(image=image, size=size, location=location, options=self._options)
        logger.debug("Resolved %s", template)
        return template

    def _resolve_requested_location(self) -> Optional[Location]:
        if self._location_id is None:
            return None
        try:
            return self.catalog.locations.get(self._location_id)
        except InvalidLocationHierarchyError:
            raise NoMatchError(f"no location matched id {self._location_id!r}") from None

    def _location_for(self, image: Image) -> Location:
        if image.location_id is None:
            return self.catalog.default_location()
        try:
            return self.catalog.locations.get(image.location_id)
        except InvalidLocationHierarchyError:
            raise NoMatchError(
                f"image {image.id} lives in unknown location {image.location_id!r}"
            ) from None

    def _image_available_in(self, image: Image, location: Location) -> bool:
        if image.location_id is None:
            return True
        registry = self.catalog.locations
        if image.location_id in registry.lineage_ids(location):
            return True
        if image.location_id not in registry:
            return False
        return registry.same_or_child(registry.get(image.location_id), location)

    def _resolve_image(self, location: Optional[Location]) -> Image:
        candidates = list(self.catalog.images)
        if self._image_id is not None:
            candidates = [i for i in candidates if i.id == self._image_id]
        if self._os_family is not None:
            candidates = [i for i in candidates if i.os_family is self._os_family]
        if self._image_name_pattern is not None:
            pattern = re.compile(self._image_name_pattern)
            candidates = [
                i for i in candidates
                if pattern.search(i.name) or pattern.search(i.os_description)
            ]
        if self._architecture is not None:
            candidates = [i for i in candidates if i.architecture == self._architecture]
        if location is not None:
            candidates = [i for i in candidates if self._image_available_in(i, location)]
        if not candidates:
            raise NoMatchError(f"no image matched {self._describe()}")
        return max(candidates, key=lambda i: i.preference_key)

    def _resolve_size(self, image: Image, location: Location) -> Size:
        lineage = self.catalog.locations.lineage_ids(location)
        candidates = sorted(
            (
                s for s in self.catalog.sizes
                if s.supports(image.architecture)
                and s.offered_in(lineage)
                and s.cores >= self._min_cores
                and s.ram >= self._min_ram
            ),
            key=lambda s: s.sort_key,
        )
        if not candidates:
            raise NoMatchError(
                f"no size matched image {image.id} in {location.id} ({self._describe()})"
            )
        return candidates[-1] if self._biggest else candidates[0]

    def _describe(self) -> str:
        criteria = {
            "image_id": self._image_id,
            "os_family": self._os_family.value if self._os_family else None,
            "image_name": self._image_name_pattern,
            "architecture": self._architecture,
            "location_id": self._location_id,
            "min_cores": self._min_cores or None,
            "min_ram": self._min_ram or None,
        }
        parts = [f"{k}={v}" for k, v in criteria.items() if v is not None]
        return ", ".join(parts) or "default criteria"
