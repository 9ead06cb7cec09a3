"""
Data types shared across the pipeline.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Literal

from pydantic import BaseModel, ConfigDict, Field


# Placeholder for a field that could not be determined from static markup
NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class ProductRecord:
    """A product candidate extracted from one listing anchor."""
    id: str
    name: str
    sku: str = NOT_AVAILABLE
    price: str = NOT_AVAILABLE
    url: str = ""

    @property
    def is_parseable(self) -> bool:
        """At least one of id, name or url must be present."""
        return bool(self.id or self.name or self.url)

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class NewProductEvent:
    """Handed to the notifier once per newly stored product."""
    id: str
    name: str
    price: str
    url: str

    @classmethod
    def from_record(cls, record: ProductRecord) -> 'NewProductEvent':
        return cls(id=record.id, name=record.name, price=record.price, url=record.url)


class RunSummary(BaseModel):
    """Result of one scrape run."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message: str
    number_discovered: int = Field(alias="numberDiscovered")
    number_indexed: int = Field(alias="numberIndexed")

    def to_response(self) -> Dict:
        """Serialize with the camelCase keys callers expect."""
        return self.model_dump(by_alias=True)


class ProductChangeEvent(BaseModel):
    """A change to a stored product, as emitted by the store's change feed."""
    model_config = ConfigDict(populate_by_name=True)

    event_name: Literal["INSERT", "MODIFY", "REMOVE"] = Field(alias="eventName")
    change_image: Dict[str, str] = Field(default_factory=dict, alias="changeImage")
