# recipe_lab/models/ai.py
# AI 레시피 생성 / 매크로 추정 / 단위 변환 요청 스키마

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

CookingMode = Literal["beginner", "traditional", "weeknight", "chef", "experimental"]


class CookingConstraints(BaseModel):
    techniqueComplexity: str
    allowedVariations: str
    specialtyIngredients: bool = False
    guidanceLevel: str


class DietaryPreferences(BaseModel):
    highProtein: bool = False
    quickMeal: bool = False
    lowCalorie: bool = False
    mealPrepFriendly: bool = False
    lowCost: bool = False
    budgetFriendly: bool = False
    lowCarb: bool = False
    glutenFree: bool = False


class RecipeDraftRequest(BaseModel):
    """Body of POST /api/recipes/ai-add."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    pantryItems: List[str] = Field(default_factory=list)
    cookingMode: CookingMode = "beginner"
    constraints: Optional[CookingConstraints] = None
    palateLevel: Optional[int] = Field(default=None, ge=1, le=10)
    preferences: DietaryPreferences = Field(default_factory=DietaryPreferences)


class GenerateRequest(BaseModel):
    """Body of POST /api/recipes/generate."""

    model_config = ConfigDict(extra="ignore")

    prompt: Optional[str] = None
    pantryItems: List[str] = Field(default_factory=list)


class EstimateMacrosIn(BaseModel):
    # 재료는 느슨하게 받아서 라우트에서 걸러낸다 (이름 없음/수량<=0 제외)
    ingredients: List[Any] = Field(default_factory=list)
    servings: Any = 1


class ConvertIngredientsIn(BaseModel):
    ingredients: Optional[List[Any]] = None
