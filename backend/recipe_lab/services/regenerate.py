# recipe_lab/services/regenerate.py
# AI 재생성: change-set 검증 → 프롬프트 → LLM 1회 → 원본과 병합
# 병합 보장:
#   - 삭제된 재료 이름이 들어간 재료는 결과에서 제거
#   - 잠긴 재료는 원래 위치에 원본 그대로 복원
#   - 이름이 같은 재료는 원본 id 유지, 새 재료는 새 id
# 파싱 실패 시 change-set의 결정적인 부분만 로컬 적용 (Fallback)

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from recipe_lab.models.changes import (
    Constraints,
    IngredientModification,
    RegenerateRequest,
    Substitution,
)
from recipe_lab.models.recipe import Ingredient, Recipe, new_ingredient_id
from recipe_lab.services.json_extract import (
    Fallback,
    Fatal,
    JsonExtractError,
    Ok,
    Outcome,
    ShapeError,
    extract_json,
    require_object,
)
from recipe_lab.services.openai_client import LLMClient, LLMEmptyResponse

log = logging.getLogger(__name__)

MAX_TOKENS = 2500

LOCKED_MARK = " [LOCKED - DO NOT CHANGE]"
LEGACY_REF_RE = re.compile(r"^ingredient-(\d+)$")

QUICK_INTENT_TEXT = {
    "crispier": "Make it crispier (adjust technique for more texture and browning)",
    "saucier": "Make it saucier (more sauce or liquid to coat the dish)",
    "brighter": "Make it brighter (add fresh, acidic or herbal notes)",
    "less_salty": "Make it less salty (reduce salt and salty components)",
}

SYSTEM_PROMPT = """You are a professional culinary assistant who regenerates recipes based on user-specified changes.

Your task is to modify an existing recipe according to the user's instructions while maintaining recipe integrity and coherence.

CRITICAL RULES:
1. Deleted ingredients MUST NOT appear anywhere in the regenerated recipe (ingredients list or instructions)
2. Locked ingredients MUST remain unchanged (same name, quantity, and unit)
3. When substituting ingredients, ensure the replacement makes culinary sense
4. If "Replace with" is blank, choose a suitable local/common replacement
5. Respect macro direction adjustments (increase/decrease protein/carbs/fat)
6. Apply quick intents (crispier, saucier, brighter, less salty) by adjusting techniques and ingredients
7. If constraints conflict, prioritize: locks > deletions > substitutions > macro adjustments

Always respond with valid JSON matching this exact structure:
{
  "title": "string",
  "description": "string (1-2 sentences)",
  "ingredients": [
    { "quantity": number, "unit": "string", "name": "string" }
  ],
  "steps": ["string"],
  "prepTimeMinutes": number,
  "cookTimeMinutes": number,
  "servings": number,
  "tags": ["string"]
}

Do NOT include markdown, code blocks, or explanations - just the JSON object."""


class ChangeSetError(ValueError):
    """A change set refers to an ingredient the recipe does not have."""


@dataclass
class ResolvedChanges:
    # 모든 참조를 원본 재료 인덱스로 바꾼 change-set
    locked: Set[int] = field(default_factory=set)
    deletions: List[int] = field(default_factory=list)
    substitutions: List[Tuple[int, Substitution]] = field(default_factory=list)
    modifications: List[Tuple[int, IngredientModification]] = field(default_factory=list)


# ------------------------------
# 참조 해석 / 검증
# ------------------------------

def resolve_ingredient_ref(ref: str, ingredients: List[Ingredient]) -> Optional[int]:
    for idx, ing in enumerate(ingredients):
        if ing.id and ing.id == ref:
            return idx
    # 구 형식 "ingredient-<n>" (보낸 목록 기준 위치)
    m = LEGACY_REF_RE.match(ref or "")
    if m:
        idx = int(m.group(1))
        if idx < len(ingredients):
            return idx
    return None


def validate_changes(req: RegenerateRequest, ingredients: List[Ingredient]) -> ResolvedChanges:
    def resolve(ref: str) -> int:
        idx = resolve_ingredient_ref(ref, ingredients)
        if idx is None:
            raise ChangeSetError(f"Unknown ingredient reference: {ref}")
        return idx

    resolved = ResolvedChanges()
    resolved.locked = {resolve(ref) for ref in req.locks.lockedIngredientIds}

    # 잠금이 우선: 잠긴 재료를 건드리는 변경은 버린다
    for d in req.changes.deletions:
        idx = resolve(d.ingredientId)
        if idx in resolved.locked:
            log.info("ignoring deletion of locked ingredient ref=%s", d.ingredientId)
        elif idx not in resolved.deletions:
            resolved.deletions.append(idx)

    for s in req.changes.substitutions:
        idx = resolve(s.fromIngredientId)
        if idx in resolved.locked or idx in resolved.deletions:
            log.info("ignoring substitution of locked/deleted ingredient ref=%s", s.fromIngredientId)
            continue
        resolved.substitutions.append((idx, s))

    for mod in req.changes.ingredientModifications:
        idx = resolve(mod.ingredientId)
        if idx in resolved.locked or idx in resolved.deletions:
            log.info("ignoring modification of locked/deleted ingredient ref=%s", mod.ingredientId)
            continue
        resolved.modifications.append((idx, mod))

    return resolved


# ------------------------------
# 프롬프트
# ------------------------------

def build_system_prompt() -> str:
    return SYSTEM_PROMPT


def _fmt_qty(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _direction_lines(axes: Dict[str, str], labels: Dict[str, str]) -> List[str]:
    return [
        f"- {'Increase' if axes[k] == 'up' else 'Decrease'} {labels[k]}"
        for k in labels
        if axes[k] != "neutral"
    ]


def _replacement_hint(constraints: Constraints) -> str:
    kind = "local" if constraints.preferLocal else "common"
    extra = " (avoid specialty ingredients)" if constraints.avoidSpecialtyIngredients else ""
    return f"a suitable {kind} alternative{extra}"


def build_user_prompt(recipe: Recipe, req: RegenerateRequest, resolved: ResolvedChanges) -> str:
    parts: List[str] = []
    ings = recipe.ingredients

    parts.append("ORIGINAL RECIPE:")
    parts.append(f"Title: {recipe.title}")
    parts.append(f"Description: {recipe.description}")
    parts.append("\nIngredients:")
    for idx, ing in enumerate(ings):
        mark = LOCKED_MARK if idx in resolved.locked else ""
        parts.append(f"{idx + 1}. {_fmt_qty(ing.quantity)} {ing.unit} {ing.name}{mark}")
    parts.append("\nInstructions:")
    for idx, step in enumerate(recipe.steps):
        parts.append(f"{idx + 1}. {step}")

    if recipe.prepTimeMinutes:
        parts.append(f"\nPrep Time: {recipe.prepTimeMinutes} minutes")
    if recipe.cookTimeMinutes:
        parts.append(f"Cook Time: {recipe.cookTimeMinutes} minutes")
    if recipe.servings:
        parts.append(f"Servings: {recipe.servings}")

    parts.append("\n--- REQUESTED CHANGES ---")

    if resolved.substitutions:
        parts.append("\nSUBSTITUTIONS:")
        for idx, sub in resolved.substitutions:
            name = ings[idx].name
            if sub.toText and sub.toText.strip():
                parts.append(f'- Replace "{name}" with "{sub.toText.strip()}"')
            else:
                parts.append(f'- Replace "{name}" with {_replacement_hint(req.constraints)}')

    if resolved.deletions:
        parts.append("\nDELETIONS:")
        for idx in resolved.deletions:
            parts.append(f'- Remove "{ings[idx].name}" completely from the recipe')
        if req.constraints.maintainDishIntegrity:
            parts.append("IMPORTANT: Adjust the recipe to maintain dish integrity after deletions")

    macro = req.macroDirection
    macro_lines = _direction_lines(
        {"protein": macro.protein, "carbs": macro.carbs, "fat": macro.fat},
        {"protein": "protein content", "carbs": "carbohydrate content", "fat": "fat content"},
    )
    if macro_lines:
        parts.append("\nMACRO ADJUSTMENTS:")
        parts.extend(macro_lines)
        if macro.magnitude:
            parts.append(f"Magnitude: {macro.magnitude}")

    taste = req.tasteRefinements.model_dump()
    taste_lines = _direction_lines(taste, {k: k for k in taste})
    if taste_lines:
        parts.append("\nTASTE REFINEMENTS:")
        parts.extend(taste_lines)

    if req.quickIntents:
        parts.append("\nQUICK INTENTS:")
        for intent in dict.fromkeys(req.quickIntents):
            parts.append(f"- {QUICK_INTENT_TEXT[intent]}")

    if resolved.modifications:
        parts.append("\nINGREDIENT MODIFICATIONS:")
        for idx, mod in resolved.modifications:
            parts.append(
                f"- {ings[idx].name} {mod.field}: {_fmt_qty(mod.oldValue)} → {_fmt_qty(mod.newValue)}"
            )
        parts.append(
            "NOTE: When ingredients are significantly increased or decreased, adjust cook time, "
            "prep time, and serving sizes accordingly. Consider proportionally scaling other "
            "ingredients to maintain recipe balance and update timing estimates based on the "
            "new quantities."
        )

    pantry = [p.strip() for p in req.pantryItems if p and p.strip()]
    if pantry:
        parts.append("\nPANTRY ITEMS TO INCORPORATE:")
        parts.append("\n".join(f"- {p}" for p in pantry))

    if req.notes.strip():
        parts.append("\nADDITIONAL NOTES:")
        parts.append(req.notes)

    if req.constraints.preferLocal and req.locationHint and req.locationHint.label():
        parts.append(f"\nLocation hint: {req.locationHint.label()}")

    parts.append("\n--- GENERATE REGENERATED RECIPE ---")
    parts.append(
        "Create a complete, coherent recipe that incorporates all the requested changes "
        "while respecting all locks and constraints."
    )
    return "\n".join(parts)


# ------------------------------
# 병합
# ------------------------------

def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _as_int(v: Any) -> Optional[int]:
    return int(round(v)) if _is_number(v) and v >= 0 else None


def _coerce_ingredient(raw: Any) -> Optional[Ingredient]:
    if not isinstance(raw, dict):
        return None
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    qty = raw.get("quantity")
    if not _is_number(qty):
        try:
            qty = float(qty)
        except (TypeError, ValueError):
            qty = 0
    unit = raw.get("unit")
    return Ingredient(
        quantity=max(float(qty), 0.0),
        unit=unit if isinstance(unit, str) else "",
        name=name.strip(),
        note=raw.get("note") if isinstance(raw.get("note"), str) else None,
    )


def _norm(name: str) -> str:
    return name.strip().lower()


def _drop_deleted(ingredients: List[Ingredient], deleted_names: List[str]) -> List[Ingredient]:
    if not deleted_names:
        return ingredients
    return [
        ing for ing in ingredients
        if not any(d in _norm(ing.name) for d in deleted_names)
    ]


def _carry_ids(ingredients: List[Ingredient], originals: List[Ingredient], reserved: Set[str]) -> List[Ingredient]:
    by_name: Dict[str, str] = {}
    for o in originals:
        if o.id and o.id not in reserved:
            by_name.setdefault(_norm(o.name), o.id)

    used = set(reserved)
    out: List[Ingredient] = []
    for ing in ingredients:
        oid = by_name.get(_norm(ing.name))
        if oid is None or oid in used:
            oid = new_ingredient_id()
        used.add(oid)
        out.append(ing.model_copy(update={"id": oid}))
    return out


def _restore_locked(ingredients: List[Ingredient], originals: List[Ingredient], locked: Set[int]) -> List[Ingredient]:
    if not locked:
        return ingredients
    locked_ings = [originals[i] for i in sorted(locked)]
    locked_names = {_norm(l.name) for l in locked_ings}
    out = [ing for ing in ingredients if _norm(ing.name) not in locked_names]
    for idx in sorted(locked):
        out.insert(min(idx, len(out)), originals[idx].model_copy())
    return out


def _finish_ingredients(
    candidate: List[Ingredient], original: Recipe, resolved: ResolvedChanges
) -> List[Ingredient]:
    originals = original.ingredients
    deleted_names = [_norm(originals[i].name) for i in resolved.deletions]
    reserved = {originals[i].id for i in resolved.locked if originals[i].id}

    merged = _drop_deleted(candidate, deleted_names)
    merged = _carry_ids(merged, originals, reserved)
    return _restore_locked(merged, originals, resolved.locked)


def merge_regenerated(original: Recipe, parsed: Dict[str, Any], resolved: ResolvedChanges) -> Recipe:
    """Merge a model reply into the original recipe field by field."""
    title = parsed.get("title")
    description = parsed.get("description")

    ings_raw = parsed.get("ingredients")
    ingredients: List[Ingredient] = []
    if isinstance(ings_raw, list):
        ingredients = [ing for ing in map(_coerce_ingredient, ings_raw) if ing is not None]
    if not ingredients:
        # 빈 목록 = 없음으로 보고 원본 유지
        log.warning("regeneration returned no usable ingredients; keeping original list")
        ingredients = [ing.model_copy() for ing in original.ingredients]

    steps_raw = parsed.get("steps")
    steps = [s.strip() for s in steps_raw if isinstance(s, str) and s.strip()] if isinstance(steps_raw, list) else []
    if not steps:
        if steps_raw is not None:
            log.warning("regeneration returned no usable steps; keeping original steps")
        steps = list(original.steps)

    tags_raw = parsed.get("tags")
    tags = [t.strip() for t in tags_raw if isinstance(t, str) and t.strip()] if isinstance(tags_raw, list) else None

    prep = _as_int(parsed.get("prepTimeMinutes"))
    cook = _as_int(parsed.get("cookTimeMinutes"))
    servings = _as_int(parsed.get("servings"))

    return original.model_copy(update={
        "title": title.strip() if isinstance(title, str) and title.strip() else original.title,
        "description": description.strip() if isinstance(description, str) and description.strip() else original.description,
        "ingredients": _finish_ingredients(ingredients, original, resolved),
        "steps": steps,
        "prepTimeMinutes": prep if prep is not None else original.prepTimeMinutes,
        "cookTimeMinutes": cook if cook is not None else original.cookTimeMinutes,
        "servings": servings if servings else original.servings,
        "tags": tags if tags is not None else original.tags,
    })


def apply_changes_locally(original: Recipe, resolved: ResolvedChanges) -> Recipe:
    """Apply deletions, explicit substitutions and field edits without the model."""
    ings = [ing.model_copy() for ing in original.ingredients]

    for idx, mod in resolved.modifications:
        value: Any = mod.newValue
        if mod.field == "quantity":
            try:
                value = max(float(value), 0.0)
            except (TypeError, ValueError):
                log.info("skipping non-numeric quantity edit idx=%d value=%r", idx, value)
                continue
        else:
            value = str(value)
        ings[idx] = ings[idx].model_copy(update={mod.field: value})

    for idx, sub in resolved.substitutions:
        if sub.toText and sub.toText.strip():
            ings[idx] = ings[idx].model_copy(update={"name": sub.toText.strip()})

    deleted = set(resolved.deletions)
    kept = [ing for idx, ing in enumerate(ings) if idx not in deleted]
    return original.model_copy(update={"ingredients": kept})


# ------------------------------
# 엔트리
# ------------------------------

async def regenerate_recipe(llm: LLMClient, original: Recipe, req: RegenerateRequest) -> Outcome[Recipe]:
    """Regenerate ``original`` under ``req``.

    Raises ChangeSetError for unknown ingredient refs before any model call.
    Returns Ok on a usable reply, Fallback when the reply cannot be parsed,
    Fatal when the model gave no content. Upstream SDK errors propagate.
    """
    resolved = validate_changes(req, original.ingredients)
    user_prompt = build_user_prompt(original, req, resolved)

    try:
        text = await llm.complete(
            build_system_prompt(), user_prompt, max_tokens=MAX_TOKENS, json_mode=True,
        )
    except LLMEmptyResponse as e:
        return Fatal(e)

    try:
        parsed = require_object(extract_json(text, "object"))
    except (JsonExtractError, ShapeError) as e:
        log.warning("regeneration reply unusable (%s); applying changes locally", e)
        return Fallback(apply_changes_locally(original, resolved), reason=str(e))

    return Ok(merge_regenerated(original, parsed, resolved))
