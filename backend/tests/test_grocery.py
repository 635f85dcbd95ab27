import json
import re

import pytest

from recipe_lab.db.grocery import GroceryStore, name_matcher
from recipe_lab.models.grocery import GroceryItemIn


def item(name: str, quantity: float, unit: str = "g", **extra) -> dict:
    return {"ingredientName": name, "quantity": quantity, "unit": unit, **extra}


def test_merge_across_requests_same_name_and_unit(client, fake_db) -> None:
    r1 = client.post("/api/grocery", json={"items": [item("Onion", 2, "pcs", category="produce")]})
    assert r1.status_code == 200
    assert len(r1.json()["added"]) == 1

    r2 = client.post("/api/grocery", json={"items": [item("onion", 3, "pcs")]})
    body = r2.json()
    assert body["added"] == []
    assert body["merged"][0]["quantity"] == 5

    items = client.get("/api/grocery").json()["items"]
    assert len(items) == 1
    assert items[0]["quantity"] == 5
    assert items[0]["ingredientName"] == "Onion"


def test_names_are_stripped_before_merge(client) -> None:
    first = client.post("/api/grocery", json={"items": [item("Tomato ", 2, "pcs")]}).json()
    assert first["added"][0]["ingredientName"] == "Tomato"

    r = client.post("/api/grocery", json={"items": [item("  tomato", 1, "pcs")]})
    assert r.json()["added"] == []
    assert r.json()["merged"][0]["quantity"] == 3
    assert len(client.get("/api/grocery").json()["items"]) == 1


def test_different_unit_is_a_new_item(client) -> None:
    client.post("/api/grocery", json={"items": [item("milk", 1, "l")]})
    r = client.post("/api/grocery", json={"items": [item("milk", 500, "ml")]})
    assert len(r.json()["added"]) == 1
    assert len(client.get("/api/grocery").json()["items"]) == 2


def test_purchased_items_are_not_merge_targets(client) -> None:
    client.post("/api/grocery", json={"items": [item("rice", 1, "kg", isPurchased=True)]})
    client.post("/api/grocery", json={"items": [item("rice", 1, "kg")]})
    items = client.get("/api/grocery").json()["items"]
    assert len(items) == 2
    # unpurchased first
    assert [i["isPurchased"] for i in items] == [False, True]


def test_same_payload_duplicates_merge_into_first(client) -> None:
    r = client.post("/api/grocery", json={"items": [item("garlic", 2, "cloves"), item("Garlic", 3, "cloves")]})
    body = r.json()
    assert len(body["added"]) == 1
    assert body["added"][0]["quantity"] == 5
    assert body["merged"] == [{"id": body["added"][0]["id"], "quantity": 5}]


def test_name_matcher_escapes_regex() -> None:
    m = name_matcher("chili (dried)")
    assert m["$options"] == "i"
    assert re.search(m["$regex"], "Chili (Dried)", re.I)
    assert not re.search(m["$regex"], "chili dried", re.I)
    assert not re.search(m["$regex"], "red chili (dried)", re.I)


def test_add_rejects_invalid_items(client) -> None:
    r = client.post("/api/grocery", json={"items": [item("", 1)]})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid request payload."
    r = client.post("/api/grocery", json={"items": [item("salt", -1)]})
    assert r.status_code == 400


def test_patch_item(client) -> None:
    added = client.post("/api/grocery", json={"items": [item("butter", 250)]}).json()["added"][0]

    r = client.patch("/api/grocery", json={"id": added["id"], "updates": {"isPurchased": True}})
    assert r.status_code == 200
    assert r.json()["item"]["isPurchased"] is True
    assert r.json()["item"]["quantity"] == 250

    assert client.patch("/api/grocery", json={"updates": {"isPurchased": True}}).status_code == 400
    missing = client.patch("/api/grocery", json={"id": "652f1c2e8b3e4a0012345678", "updates": {}})
    assert missing.status_code == 404
    assert missing.json() == {"error": "Item not found"}


def test_delete_and_clear_purchased(client) -> None:
    a = client.post("/api/grocery", json={"items": [item("flour", 1, "kg")]}).json()["added"][0]
    client.post("/api/grocery", json={"items": [item("sugar", 1, "kg", isPurchased=True)]})
    client.post("/api/grocery", json={"items": [item("yeast", 7, "g", isPurchased=True)]})

    assert client.delete("/api/grocery", params={"clearPurchased": "true"}).json() == {"deletedCount": 2}
    assert client.delete("/api/grocery").status_code == 400
    assert client.delete("/api/grocery", params={"id": a["id"]}).json() == {"success": True}
    assert client.delete("/api/grocery", params={"id": a["id"]}).status_code == 404
    assert client.get("/api/grocery").json()["items"] == []


@pytest.mark.asyncio
async def test_store_add_or_merge_direct(fake_db) -> None:
    store = GroceryStore(fake_db)
    added, merged = await store.add_or_merge([GroceryItemIn(ingredientName="Eggs", quantity=6, unit="pcs")])
    assert merged == []
    added2, merged2 = await store.add_or_merge([GroceryItemIn(ingredientName="EGGS", quantity=6, unit="pcs")])
    assert added2 == []
    assert merged2 == [{"id": added[0].id, "quantity": 12}]


# ------------------------------
# normalize
# ------------------------------

def test_normalize_coerces_unknown_category(client, llm) -> None:
    llm.replies = ["```json\n" + json.dumps([
        {"ingredientName": "crushed tomatoes", "suggestedQuantity": 1, "suggestedUnit": "can",
         "packageDescription": "400g can", "confidenceLevel": "high", "category": "canned"},
        {"ingredientName": "parsley", "suggestedQuantity": 1, "suggestedUnit": "bunch",
         "confidenceLevel": "medium", "category": "produce"},
    ]) + "\n```"]
    r = client.post("/api/grocery/normalize", json={
        "ingredients": [{"quantity": 430, "unit": "g", "name": "crushed tomatoes"},
                        {"quantity": 45, "unit": "g", "name": "parsley"}],
        "recipeContext": {"title": "Shakshuka", "servings": 4},
    })
    assert r.status_code == 200
    out = r.json()["normalizedIngredients"]
    assert [o["category"] for o in out] == ["other", "produce"]
    assert out[0]["packageDescription"] == "400g can"
    assert "Recipe: Shakshuka (4 servings)" in llm.calls[0]["user"]


def test_normalize_unparsable_is_500(client, llm) -> None:
    llm.replies = ["I am unable to do that."]
    r = client.post("/api/grocery/normalize", json={"ingredients": [{"quantity": 1, "unit": "", "name": "egg"}]})
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to parse AI response"}


def test_normalize_rejects_missing_ingredients(client) -> None:
    r = client.post("/api/grocery/normalize", json={})
    assert r.status_code == 400
