from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OsFamily(Enum):
    UBUNTU = "ubuntu"
    DEBIAN = "debian"
    CENTOS = "centos"
    RHEL = "rhel"
    FEDORA = "fedora"
    WINDOWS = "windows"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "OsFamily":
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.lower())
        except ValueError:
            return cls.UNKNOWN


def _version_key(version: str) -> tuple:
    """Split '10.04' into (10, 4) so versions compare numerically where possible."""
    parts = []
    for chunk in version.replace("-", ".").split("."):
        parts.append((0, int(chunk), "") if chunk.isdigit() else (1, 0, chunk))
    return tuple(parts)


@dataclass(frozen=True)
class Image:
    """
    Value Object representing a bootable image in a provider catalog.

    location_id is None for images usable in every location.
    """
    id: str
    name: str = ""
    os_family: OsFamily = OsFamily.UNKNOWN
    os_description: str = ""
    version: str = ""
    architecture: str = "x86_64"
    location_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Image id cannot be empty")

    @property
    def preference_key(self) -> tuple:
        return (_version_key(self.version), self.id)
