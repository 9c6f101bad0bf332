"""Garment and try-on request models."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GarmentRef(BaseModel):
    """One clothing item selected for the try-on."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    category: str = Field(description="e.g., 'Tops', 'Bottoms', 'Outerwear'")
    image_url: str | None = Field(
        default=None,
        alias="imageUrl",
        description="Hosted image of the garment; items without one are skipped",
    )

    @property
    def is_selected(self) -> bool:
        return bool(self.image_url)


class TryOnRequest(BaseModel):
    """Request body for a streamed virtual try-on."""

    model_config = ConfigDict(populate_by_name=True)

    base_image_url: str = Field(
        alias="humanImage",
        min_length=1,
        description="Photo of the person the garments are applied to",
    )
    garments: list[GarmentRef] = Field(
        alias="clothingItems",
        min_length=1,
        description="Garments in the order they are applied",
    )

    @field_validator("base_image_url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("humanImage must not be blank")
        return value
