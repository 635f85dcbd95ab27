# recipe_lab/models/recipe.py
# 레시피 표준 스키마: 프론트 필드명(camelCase) 그대로 사용

from __future__ import annotations

import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

INGREDIENT_ID_PREFIX = "ing_"


def new_ingredient_id() -> str:
    return f"{INGREDIENT_ID_PREFIX}{uuid.uuid4().hex[:12]}"


class Ingredient(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # 생성 시 부여되는 고정 id (change-set이 이걸로 재료를 가리킴)
    id: Optional[str] = None
    quantity: float = Field(default=0, ge=0)  # 0 = "to taste"
    unit: str = ""
    name: str
    note: Optional[str] = None
    tooltip: Optional[str] = None
    isSubrecipe: Optional[bool] = None


class MacroInformation(BaseModel):
    # 1인분 기준. 나트륨/콜레스테롤만 mg, 나머지 g
    calories: float
    protein: float
    carbohydrates: float
    fat: float
    fiber: Optional[float] = None
    sugar: Optional[float] = None
    sodium: Optional[float] = None
    cholesterol: Optional[float] = None
    saturatedFat: Optional[float] = None
    unsaturatedFat: Optional[float] = None


MACRO_REQUIRED_FIELDS = ("calories", "protein", "carbohydrates", "fat")
MACRO_OPTIONAL_FIELDS = (
    "fiber", "sugar", "sodium", "cholesterol", "saturatedFat", "unsaturatedFat",
)


class RecipeImage(BaseModel):
    provider: Literal["unsplash"] = "unsplash"
    photoId: str
    urlSmall: str
    urlRegular: str
    urlFull: str
    alt: str = ""
    creditName: str
    creditUsername: str
    creditUrl: str
    sourceUrl: str


class RecipeIn(BaseModel):
    """Body of POST/PUT /api/recipes. Presence rules are checked by the route."""

    model_config = ConfigDict(extra="ignore")

    title: str = ""
    description: str = ""
    ingredients: List[Ingredient] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    prepTimeMinutes: Optional[int] = None
    cookTimeMinutes: Optional[int] = None
    servings: Optional[int] = None
    tags: Optional[List[str]] = None
    images: Optional[List[RecipeImage]] = None
    macros: Optional[MacroInformation] = None
    isDraft: Optional[bool] = None


class Recipe(RecipeIn):
    id: str
    createdAt: str
    updatedAt: str


def ensure_ingredient_ids(ingredients: List[Ingredient]) -> List[Ingredient]:
    # id 없는 재료(구 문서/LLM 출력)에 새 id 부여. 기존 id는 유지
    return [
        ing if ing.id else ing.model_copy(update={"id": new_ingredient_id()})
        for ing in ingredients
    ]
