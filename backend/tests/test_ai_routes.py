import json

import httpx
import openai

from conftest import make_photo, recipe_payload
from recipe_lab.db.recipes import COLLECTION

DRAFT_REPLY = json.dumps({
    "title": "Chickpea Curry",
    "description": "Weeknight curry.",
    "ingredients": [
        {"quantity": 400, "unit": "g", "name": "chickpeas"},
        {"quantity": 1, "unit": "can", "name": "coconut milk"},
    ],
    "steps": ["Simmer everything.", "Serve with rice."],
    "prepTimeMinutes": 10,
    "cookTimeMinutes": 25,
    "servings": 4,
    "tags": ["curry", "vegan"],
})


def _stored(client) -> dict:
    return client.post("/api/recipes", json=recipe_payload()).json()


# ------------------------------
# ai-regenerate
# ------------------------------

def test_regenerate_loads_recipe_by_id(client, llm) -> None:
    stored = _stored(client)
    llm.replies = [json.dumps({
        "title": "Lemon Chicken (light)",
        "ingredients": [
            {"quantity": 250, "unit": "g", "name": "chicken breast"},
            {"quantity": 1, "unit": "", "name": "lemon"},
        ],
        "steps": ["Bake the chicken."],
    })]
    oil = stored["ingredients"][2]["id"]
    r = client.post(f"/api/recipes/{stored['id']}/ai-regenerate", json={
        "changes": {"deletions": [{"ingredientId": oil}]},
        "macroDirection": {"fat": "down"},
    })
    assert r.status_code == 200
    body = r.json()
    assert "_fallback" not in body
    assert body["title"] == "Lemon Chicken (light)"
    assert body["id"] == stored["id"]
    assert body["ingredients"][0]["id"] == stored["ingredients"][0]["id"]
    assert 'Remove "olive oil"' in llm.calls[0]["user"]
    assert "Decrease fat content" in llm.calls[0]["user"]
    # not persisted
    assert client.get(f"/api/recipes/{stored['id']}").json()["title"] == "Lemon Chicken"


def test_regenerate_with_inline_recipe_and_fallback(client, llm) -> None:
    stored = _stored(client)
    llm.replies = ["not json at all"]
    r = client.post("/api/recipes/anything/ai-regenerate", json={
        "originalRecipe": stored,
        "changes": {"substitutions": [{"fromIngredientId": "ingredient-1", "toText": "lime"}]},
    })
    assert r.status_code == 200
    body = r.json()
    assert body["_fallback"] is True
    assert [i["name"] for i in body["ingredients"]] == ["chicken breast", "lime", "olive oil"]


def test_regenerate_missing_recipe_404(client) -> None:
    r = client.post("/api/recipes/652f1c2e8b3e4a0012345678/ai-regenerate", json={})
    assert r.status_code == 404
    assert r.json() == {"message": "Recipe not found."}


def test_regenerate_unknown_ref_400(client, llm) -> None:
    stored = _stored(client)
    r = client.post(f"/api/recipes/{stored['id']}/ai-regenerate", json={
        "locks": {"lockedIngredientIds": ["ing_doesnotexist"]},
    })
    assert r.status_code == 400
    assert "ing_doesnotexist" in r.json()["message"]
    assert llm.calls == []


def test_regenerate_forwards_upstream_status(client, llm) -> None:
    stored = _stored(client)
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(401, request=request, json={"error": {"message": "bad key"}})
    llm.replies = [openai.AuthenticationError("bad key", response=response, body={"message": "bad key"})]

    r = client.post(f"/api/recipes/{stored['id']}/ai-regenerate", json={})
    assert r.status_code == 401
    assert r.json() == {"message": "Failed to regenerate recipe.", "details": {"message": "bad key"}}


# ------------------------------
# generate / ai-add
# ------------------------------

def test_generate_returns_preview_without_saving(client, llm, fake_db) -> None:
    llm.replies = [DRAFT_REPLY]
    r = client.post("/api/recipes/generate", json={"prompt": "a cosy curry", "pantryItems": ["chickpeas"]})
    assert r.status_code == 200
    recipe = r.json()["recipe"]
    assert recipe["title"] == "Chickpea Curry"
    assert all(i["id"].startswith("ing_") for i in recipe["ingredients"])
    assert fake_db[COLLECTION].docs == []
    assert llm.calls[0]["max_tokens"] == 2000
    assert "Description: a cosy curry" in llm.calls[0]["user"]


def test_generate_requires_description_or_pantry(client, llm) -> None:
    r = client.post("/api/recipes/generate", json={"prompt": "  ", "pantryItems": ["", " "]})
    assert r.status_code == 400
    assert r.json() == {"message": "Provide a description or at least one pantry item."}
    assert llm.calls == []


def test_generate_fills_defaults(client, llm) -> None:
    llm.replies = ["{}"]
    recipe = client.post("/api/recipes/generate", json={"pantryItems": ["eggs"]}).json()["recipe"]
    assert recipe["title"] == "Chef's Choice"
    assert recipe["description"] == "A delicious dish."
    assert recipe["ingredients"][0]["name"] == "Ingredient"
    assert recipe["steps"] == ["Combine ingredients and enjoy."]


def test_ai_add_saves_recipe_with_images(client, llm, photos, fake_db) -> None:
    llm.replies = [DRAFT_REPLY]
    photos.results = {
        "Chickpea Curry": [make_photo("c1")],
        "chickpeas": [make_photo("c1"), make_photo("c2")],
        "curry food": [make_photo("c3")],
    }
    r = client.post("/api/recipes/ai-add", json={
        "description": "creamy curry",
        "pantryItems": [f"item{i}" for i in range(25)],
        "cookingMode": "weeknight",
        "constraints": {"techniqueComplexity": "low", "allowedVariations": "few", "guidanceLevel": "detailed"},
        "palateLevel": 8,
        "preferences": {"highProtein": True, "glutenFree": True},
    })
    assert r.status_code == 201
    recipe = r.json()["recipe"]
    assert [img["photoId"] for img in recipe["images"]] == ["c1", "c2", "c3"]
    assert len(photos.tracked) == 3
    assert len(fake_db[COLLECTION].docs) == 1

    prompt = llm.calls[0]["user"]
    assert "item19" in prompt and "item20" not in prompt
    assert "Cooking mode: weeknight" in prompt
    assert "Bold & Adventurous" in prompt
    assert "Dietary requirements: high protein, gluten-free" in prompt


def test_ai_add_rejects_out_of_range_palate(client) -> None:
    r = client.post("/api/recipes/ai-add", json={"description": "soup", "palateLevel": 11})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid request payload."


# ------------------------------
# convert-ingredients
# ------------------------------

def test_convert_ok(client, llm) -> None:
    llm.replies = ['[{"quantity": 240, "unit": "g", "name": "flour", "note": null, "tooltip": null}]']
    r = client.post("/api/convert-ingredients", json={"ingredients": [{"quantity": 2, "unit": "cups", "name": "flour"}]})
    assert r.status_code == 200
    assert r.json() == {"convertedIngredients": [{"quantity": 240, "unit": "g", "name": "flour"}]}


def test_convert_fallback_returns_originals(client, llm) -> None:
    original = [{"quantity": 2, "unit": "cups", "name": "flour"}]
    llm.replies = ['[{"quantity": "two hundred", "unit": "g", "name": "flour"}]']
    r = client.post("/api/convert-ingredients", json={"ingredients": original})
    assert r.status_code == 200
    assert r.json()["convertedIngredients"] == original
    assert r.json()["warning"] == "Could not parse AI response, returning original ingredients"


def test_convert_errors(client, llm) -> None:
    assert client.post("/api/convert-ingredients", json={}).status_code == 400

    from recipe_lab.services.openai_client import LLMEmptyResponse
    llm.replies = [LLMEmptyResponse("empty")]
    r = client.post("/api/convert-ingredients", json={"ingredients": []})
    assert r.status_code == 500
    assert r.json() == {"error": "No response from AI"}
