"""Pydantic schemas for extracted recipe data and stored recipe responses."""

from typing import Any

from pydantic import BaseModel, Field, ValidationError

from recipe_ingest.domain.entities.recipe import Recipe


class Servings(BaseModel):
    value: float
    note: str | None = None


class Macros(BaseModel):
    """Per-serving macros; unknown nutrient keys are kept."""

    model_config = {"extra": "allow"}

    calories: float | None = None
    protein_g: float | None = None
    carbs_g: float | None = None
    fat_g: float | None = None


class Ingredient(BaseModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    quantity: float | str | None = None
    unit: str | None = None
    preparation: str | None = None
    section: str | None = None
    optional: bool = False
    chefs_note: str | None = None


class Step(BaseModel):
    idx: int
    text: str = Field(min_length=1)
    used_ingredients: list[str] = Field(default_factory=list)  # Ingredient.id references


class RecipeData(BaseModel):
    """Schema the extraction model's JSON must satisfy."""

    title: str = Field(min_length=1)
    servings: Servings | None = None
    prep_time_min: float | None = None
    cook_time_min: float | None = None
    total_time_min: float | None = None
    difficulty: str | None = None
    cuisine: str | None = None
    macros_per_serving: Macros | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    ingredients: list[Ingredient] = Field(min_length=1)
    steps: list[Step] = Field(min_length=1)
    assumptions: list[str] = Field(default_factory=list)


def validation_issues(error: ValidationError, limit: int = 3) -> list[str]:
    """Compact ``path: message`` strings for the first few validation errors."""
    issues = []
    for item in error.errors()[:limit]:
        path = ".".join(str(part) for part in item["loc"]) or "<root>"
        issues.append(f"{path}: {item['msg']}")
    return issues


class RecipeResponse(BaseModel):
    """Stored recipe representation returned to clients."""

    id: str
    import_id: str
    input_url: str
    title: str | None = None
    short_code: str | None = None
    source_url: str | None = None
    caption: str = ""
    hashtags: list[str] = Field(default_factory=list)
    owner_username: str | None = None
    video_url: str | None = None
    display_url: str | None = None
    recipe_data: dict[str, Any]
    created_at: str

    @classmethod
    def from_entity(cls, recipe: Recipe) -> "RecipeResponse":
        return cls(
            id=recipe.id,
            import_id=recipe.import_id,
            input_url=recipe.input_url,
            title=recipe.title,
            short_code=recipe.short_code,
            source_url=recipe.source_url,
            caption=recipe.caption,
            hashtags=recipe.hashtags,
            owner_username=recipe.owner_username,
            video_url=recipe.video_url,
            display_url=recipe.display_url,
            recipe_data=recipe.recipe_data,
            created_at=recipe.created_at.isoformat(),
        )
