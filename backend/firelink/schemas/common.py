"""Shared schema primitives."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict:
        """Dump to a JSON-compatible dict with wire (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True)


class Coordinates(BaseModel):
    """Geographic coordinates in decimal degrees, validated at ingress."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class BoundingBox(BaseModel):
    """Bounding box used to pre-filter candidates before exact distance checks."""

    min_lat: float = Field(..., ge=-90, le=90)
    min_lng: float = Field(..., ge=-180, le=180)
    max_lat: float = Field(..., ge=-90, le=90)
    max_lng: float = Field(..., ge=-180, le=180)

    def contains(self, lat: float, lng: float) -> bool:
        """Check if coordinates are within this box (edges included)."""
        return (
            self.min_lat <= lat <= self.max_lat
            and self.min_lng <= lng <= self.max_lng
        )
