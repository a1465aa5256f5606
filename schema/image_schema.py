"""
Image schema

Images are derived from an Animal after its detail scrape; no fetch is
involved.
"""
from dataclasses import dataclass
from typing import Dict, List

from .animal_schema import Animal


@dataclass(frozen=True)
class Image:
  """One photo of an animal"""
  url: str
  animal_url: str

  def to_row(self) -> Dict[str, str]:
    return {"url": self.url, "animal_url": self.animal_url}


def generate_images(animal: Animal) -> List[Image]:
  """One Image per photo URL on the animal, keyed back to the animal"""
  return [Image(url=url, animal_url=animal.url) for url in animal.images]
