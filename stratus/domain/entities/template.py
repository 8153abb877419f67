"""
Template Module

Architectural Intent:
- Template is the resolved (image, size, location, options) tuple handed to a
  provider when nodes are created
- TemplateOptions is an immutable value: every fluent option returns a new
  instance, and the final value is captured once at template-build time
- Equality is structural so a template built from an image id equals one
  built from the full criteria describing the same image
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Optional, Union

from stratus.domain.value_objects.credentials import Credentials
from stratus.domain.value_objects.image import Image
from stratus.domain.value_objects.location import Location
from stratus.domain.value_objects.size import Size

Text = Union[str, bytes]


def _as_text(value: Text) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


@dataclass(frozen=True)
class TemplateOptions:
    private_key: Optional[str] = None
    public_key: Optional[str] = None
    script: Optional[str] = None
    override_credentials: Optional[Credentials] = None
    port: Optional[int] = None
    seconds: int = 0
    include_metadata: bool = False

    def install_private_key(self, private_key: Text) -> "TemplateOptions":
        key = _as_text(private_key)
        if "PRIVATE KEY-----" not in key:
            raise ValueError("private_key must be PEM encoded")
        return replace(self, private_key=key)

    def authorize_public_key(self, public_key: Text) -> "TemplateOptions":
        key = _as_text(public_key).strip()
        if not key:
            raise ValueError("public_key cannot be empty")
        return replace(self, public_key=key)

    def run_script(self, script: Text) -> "TemplateOptions":
        text = _as_text(script)
        if not text.strip():
            raise ValueError("script cannot be empty")
        return replace(self, script=text)

    def override_credentials_with(self, credentials: Credentials) -> "TemplateOptions":
        # replaces any previous override; account/key are never merged
        return replace(self, override_credentials=credentials)

    def block_on_port(self, port: int, seconds: int) -> "TemplateOptions":
        if not (1 <= port <= 65535):
            raise ValueError(f"Port must be 1-65535, got {port}")
        if seconds <= 0:
            raise ValueError("seconds must be positive")
        return replace(self, port=port, seconds=seconds)

    def with_metadata(self) -> "TemplateOptions":
        return replace(self, include_metadata=True)

    @property
    def is_include_metadata(self) -> bool:
        return self.include_metadata

    @property
    def has_bootstrap(self) -> bool:
        return any((self.private_key, self.public_key, self.script))


@dataclass(frozen=True)
class Template:
    """Immutable description of what to provision."""
    image: Image
    size: Size
    location: Location
    options: TemplateOptions = field(default_factory=TemplateOptions)

    def with_options(self, options: TemplateOptions) -> "Template":
        return replace(self, options=options)

    def __str__(self) -> str:
        return (
            f"Template(image={self.image.id}, size={self.size.id}, "
            f"location={self.location.id})"
        )
