"""Per-serving nutrition facts pulled out of an Open Food Facts product."""

import math
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator

MISSING = "N/D"


def front_image_url(product: Dict[str, Any], language: str = "en") -> Optional[str]:
    """Selected front image for ``language``, else any language, else the default front image."""
    display = ((product.get("selected_images") or {}).get("front") or {}).get("display") or {}
    url = display.get(language) or next((u for u in display.values() if u), None)
    return url or product.get("image_front_url") or None


class NutritionFacts(BaseModel):
    code: Optional[str] = None
    product_name: Optional[str] = None
    image_url: Optional[str] = None
    serving_size: Optional[str] = None

    # per serving
    energy_kcal: Optional[float] = None
    carbohydrates: Optional[float] = None
    proteins: Optional[float] = None
    fat: Optional[float] = None

    @field_validator("energy_kcal", "carbohydrates", "proteins", "fat", mode="before")
    @classmethod
    def _as_number(cls, v):
        # Open Food Facts sometimes sends numbers as strings, or "" for unknown.
        if v is None or isinstance(v, bool):
            return None
        try:
            number = float(v)
        except (TypeError, ValueError):
            return None
        return number if math.isfinite(number) else None

    @field_validator("code", "product_name", "serving_size", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @classmethod
    def from_product(cls, product: Dict[str, Any], language: str = "en") -> "NutritionFacts":
        nutriments = product.get("nutriments") or {}
        return cls(
            code=product.get("code"),
            product_name=product.get("product_name"),
            image_url=front_image_url(product, language),
            serving_size=product.get("serving_size"),
            energy_kcal=nutriments.get("energy-kcal_serving"),
            carbohydrates=nutriments.get("carbohydrates_serving"),
            proteins=nutriments.get("proteins_serving"),
            fat=nutriments.get("fat_serving"),
        )


def format_amount(value: Optional[float], unit: str = "") -> str:
    """12.0 -> "12", 3.456 -> "3.5"; None -> "N/D" (unit is dropped)."""
    if value is None:
        return MISSING
    text = f"{round(value, 1):.1f}".rstrip("0").rstrip(".")
    return text + unit
