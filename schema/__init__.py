"""
Schema Package

Entities persisted by the scraper:
- animal_schema: Animal and its status values
- image_schema: Image, derived from an Animal's photo list
- group_schema: rescue Group
"""

from .animal_schema import (
  Animal,
  AnimalStatus,
  AVAILABLE_ONLY_FIELDS,
  get_current_timestamp,
)

from .image_schema import (
  Image,
  generate_images,
)

from .group_schema import Group

__all__ = [
  'Animal',
  'AnimalStatus',
  'AVAILABLE_ONLY_FIELDS',
  'get_current_timestamp',
  'Image',
  'generate_images',
  'Group',
]
