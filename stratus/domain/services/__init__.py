"""
Domain Services Package

Architectural Intent:
- Contains domain services: location hierarchy, template matching and node
  predicates
"""

from stratus.domain.services.location_hierarchy import LocationRegistry
from stratus.domain.services.template_builder import TemplateBuilder, TemplateCatalog

__all__ = [
    "LocationRegistry",
    "TemplateBuilder",
    "TemplateCatalog",
]
