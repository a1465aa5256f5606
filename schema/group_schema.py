"""
Rescue group schema
v1.0.0

A Group is keyed by its canonical detail-page URL. Contact details are
optional; labels the scraper could not map are kept in review_labels so a
person can look at them.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .animal_schema import to_json_text


@dataclass(frozen=True)
class Group:
  """A rescue group that fosters animals"""
  url: str
  name: Optional[str] = None
  about: Optional[str] = None
  adoption_process: Optional[str] = None
  states: Tuple[str, ...] = field(default_factory=tuple)
  social: Dict[str, str] = field(default_factory=dict)  # channel -> URL

  contact_name: Optional[str] = None
  phone_1: Optional[str] = None
  phone_2: Optional[str] = None
  phone_3: Optional[str] = None

  review_labels: Tuple[str, ...] = field(default_factory=tuple)
  scraped_at: Optional[str] = None

  def to_row(self) -> Dict[str, Any]:
    return {
      "url": self.url,
      "name": self.name,
      "about": self.about,
      "adoption_process": self.adoption_process,
      "states": to_json_text(list(self.states)),
      "social": to_json_text(self.social),
      "contact_name": self.contact_name,
      "phone_1": self.phone_1,
      "phone_2": self.phone_2,
      "phone_3": self.phone_3,
      "review_labels": ", ".join(self.review_labels) or None,
      "scraped_at": self.scraped_at,
    }
