# recipe_lab/models/changes.py
# AI 재생성 요청(change-set) 스키마: 저장하지 않는 요청 전용 구조

from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from recipe_lab.models.recipe import Recipe

Direction = Literal["down", "neutral", "up"]
Magnitude = Literal["small", "medium", "large"]
QuickIntent = Literal["crispier", "saucier", "brighter", "less_salty"]


class LocationHint(BaseModel):
    country: Optional[str] = None
    city: Optional[str] = None
    locale: Optional[str] = None

    def label(self) -> Optional[str]:
        return self.city or self.country or self.locale


class Constraints(BaseModel):
    preferLocal: bool = False
    avoidSpecialtyIngredients: bool = False
    maintainDishIntegrity: bool = True


class Locks(BaseModel):
    lockedIngredientIds: List[str] = Field(default_factory=list)


class Substitution(BaseModel):
    fromIngredientId: str
    toText: Optional[str] = None  # None/빈 문자열 = 모델이 대체재 선택


class Deletion(BaseModel):
    ingredientId: str


class IngredientModification(BaseModel):
    ingredientId: str
    field: Literal["quantity", "unit", "name"]
    oldValue: Union[float, str]
    newValue: Union[float, str]


class Changes(BaseModel):
    substitutions: List[Substitution] = Field(default_factory=list)
    deletions: List[Deletion] = Field(default_factory=list)
    ingredientModifications: List[IngredientModification] = Field(default_factory=list)


class MacroDirection(BaseModel):
    protein: Direction = "neutral"
    carbs: Direction = "neutral"
    fat: Direction = "neutral"
    magnitude: Optional[Magnitude] = None


class TasteRefinements(BaseModel):
    saltiness: Direction = "neutral"
    spiciness: Direction = "neutral"
    acidity: Direction = "neutral"
    sweetness: Direction = "neutral"
    richness: Direction = "neutral"


class RegenerateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # 없으면 경로의 recipeId로 DB에서 읽는다
    originalRecipe: Optional[Recipe] = None
    locationHint: Optional[LocationHint] = None
    constraints: Constraints = Field(default_factory=Constraints)
    locks: Locks = Field(default_factory=Locks)
    changes: Changes = Field(default_factory=Changes)
    macroDirection: MacroDirection = Field(default_factory=MacroDirection)
    tasteRefinements: TasteRefinements = Field(default_factory=TasteRefinements)
    quickIntents: List[QuickIntent] = Field(default_factory=list)
    notes: str = ""
    pantryItems: List[str] = Field(default_factory=list)
