# recipe_lab/models/grocery.py
# 장보기 목록 스키마

from __future__ import annotations

from typing import List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator

from recipe_lab.models.recipe import Ingredient

GroceryCategory = Literal["produce", "meat-fish", "dairy", "pantry", "frozen", "other"]
GROCERY_CATEGORIES = get_args(GroceryCategory)

ConfidenceLevel = Literal["low", "medium", "high"]


class GroceryItemIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ingredientName: str = Field(min_length=1)
    quantity: float = Field(ge=0)
    unit: str = ""
    packageDescription: Optional[str] = None
    category: GroceryCategory = "other"
    isPurchased: bool = False
    sourceRecipeId: Optional[str] = None
    sourceRecipeTitle: Optional[str] = None

    # 병합 조회(name_matcher)와 같은 기준으로 저장
    @field_validator("ingredientName", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class GroceryItem(GroceryItemIn):
    id: str
    createdAt: str
    updatedAt: str


class GroceryItemUpdate(BaseModel):
    # PATCH용 부분 업데이트 (None = 변경 없음)
    model_config = ConfigDict(extra="ignore")

    ingredientName: Optional[str] = None
    quantity: Optional[float] = Field(default=None, ge=0)
    unit: Optional[str] = None
    packageDescription: Optional[str] = None
    category: Optional[GroceryCategory] = None
    isPurchased: Optional[bool] = None
    sourceRecipeId: Optional[str] = None
    sourceRecipeTitle: Optional[str] = None

    @field_validator("ingredientName", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class AddGroceryItemsIn(BaseModel):
    items: List[GroceryItemIn]


class PatchGroceryItemIn(BaseModel):
    id: str = ""
    updates: GroceryItemUpdate = Field(default_factory=GroceryItemUpdate)


class NormalizedIngredient(BaseModel):
    ingredientName: str
    suggestedQuantity: float
    suggestedUnit: str
    packageDescription: Optional[str] = None
    confidenceLevel: ConfidenceLevel = "medium"
    category: GroceryCategory = "other"


class RecipeContext(BaseModel):
    title: str
    servings: Optional[int] = None


class NormalizeIn(BaseModel):
    ingredients: List[Ingredient]
    recipeContext: Optional[RecipeContext] = None
