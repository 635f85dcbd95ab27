# recipe_lab/models/draft.py
# 저장 전 레시피 드래프트 (원본 재료 스냅샷 포함 → 되돌리기 가능)

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from recipe_lab.models.recipe import Ingredient, MacroInformation

DRAFT_ID_PREFIX = "draft_"


class DraftPreview(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    description: str = ""
    ingredients: List[Ingredient] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    prepTimeMinutes: Optional[int] = None
    cookTimeMinutes: Optional[int] = None
    servings: Optional[int] = None
    tags: Optional[List[str]] = None


class RecipeDraft(DraftPreview):
    id: str
    originalIngredients: List[Ingredient] = Field(default_factory=list)
    createdAt: str
    updatedAt: str


class DraftIngredientsIn(BaseModel):
    ingredients: List[Ingredient]


class PublishDraftIn(BaseModel):
    macros: Optional[MacroInformation] = None
