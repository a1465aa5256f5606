"""
Animal schema
v1.0.0

An Animal is keyed by its canonical detail-page URL. Fields in the
"available only" group are filled in only when the listing is still up for
adoption; for adopted/withdrawn animals they stay None.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class AnimalStatus(str, Enum):
  """Known adoption status values"""
  AVAILABLE = "available"
  ADOPTED = "adopted"
  WITHDRAWN = "withdrawn"

  @classmethod
  def from_banner(cls, text: Optional[str]) -> str:
    """
    Normalize status banner text.
    No banner (or a blank one) means the animal is available. Unknown
    banners are kept as their lower-cased text.
    """
    if not text:
      return cls.AVAILABLE.value

    value = " ".join(text.split()).lower().strip(" !.")
    if not value:
      return cls.AVAILABLE.value

    for status in cls:
      if value == status.value:
        return status.value
    return value


# Columns only populated for available animals
AVAILABLE_ONLY_FIELDS = (
  "age",
  "adoption_fee",
  "desexed",
  "vaccinated",
  "wormed",
  "heartworm_treated",
  "description",
  "interstate",
)

BOOLEAN_FIELDS = ("desexed", "vaccinated", "wormed", "heartworm_treated", "interstate")


@dataclass(frozen=True)
class Animal:
  """A single adoption listing"""

  # ===== IDENTITY =====
  url: str

  # ===== ALWAYS EXTRACTED =====
  status: str = AnimalStatus.AVAILABLE.value
  name: Optional[str] = None
  gender: Optional[str] = None
  breed: Optional[str] = None
  species: Optional[str] = None
  site_id: Optional[int] = None
  group_url: Optional[str] = None
  state: Optional[str] = None
  last_updated: Optional[str] = None
  scraped_at: Optional[str] = None
  images: Tuple[str, ...] = field(default_factory=tuple)

  # ===== AVAILABLE ONLY =====
  age: Optional[str] = None
  adoption_fee: Optional[str] = None
  desexed: Optional[bool] = None
  vaccinated: Optional[bool] = None
  wormed: Optional[bool] = None
  heartworm_treated: Optional[bool] = None
  description: Optional[str] = None
  interstate: Optional[bool] = None

  def __post_init__(self):
    if self.status != AnimalStatus.AVAILABLE.value:
      carried = [name for name in AVAILABLE_ONLY_FIELDS if getattr(self, name) is not None]
      if carried:
        raise ValueError(f"{self.status} animal {self.url} carries available-only fields: {carried}")

  @property
  def is_available(self) -> bool:
    return self.status == AnimalStatus.AVAILABLE.value

  def to_row(self) -> Dict[str, Any]:
    """Row for the animals table. Images are stored separately."""
    return {
      "url": self.url,
      "name": self.name,
      "description": self.description,
      "gender": self.gender,
      "breed": self.breed,
      "species": self.species,
      "site_id": self.site_id,
      "status": self.status,
      "group_url": self.group_url,
      "state": self.state,
      "interstate": bool_to_text(self.interstate),
      "last_updated": self.last_updated,
      "scraped_at": self.scraped_at,
      "age": self.age,
      "adoption_fee": self.adoption_fee,
      "desexed": bool_to_text(self.desexed),
      "vaccinated": bool_to_text(self.vaccinated),
      "wormed": bool_to_text(self.wormed),
      "heartworm_treated": bool_to_text(self.heartworm_treated),
    }


def bool_to_text(value: Optional[bool]) -> Optional[str]:
  if value is None:
    return None
  return "true" if value else "false"


def to_json_text(value: Any) -> Optional[str]:
  if value is None:
    return None
  return json.dumps(value, sort_keys=True)


def get_current_timestamp() -> str:
  """Returns current timestamp in ISO format"""
  return datetime.now().isoformat()
