# recipe_lab/db/indexes.py
# 컬렉션 인덱스 생성
# 앱 스타트업에서 한 번 ensure_indexes()를 await로 호출한다.

from recipe_lab.db.drafts import COLLECTION as DRAFTS
from recipe_lab.db.grocery import COLLECTION as GROCERY
from recipe_lab.db.init import get_db
from recipe_lab.db.recipes import COLLECTION as RECIPES


async def ensure_indexes():
    db = get_db()

    # 목록 정렬(최신순)
    await db[RECIPES].create_index([("createdAt", -1)])

    # 장보기: 미구매 먼저 + 이름/단위 병합 조회
    await db[GROCERY].create_index([("isPurchased", 1), ("createdAt", -1)])
    await db[GROCERY].create_index([("ingredientName", 1), ("unit", 1), ("isPurchased", 1)])

    await db[DRAFTS].create_index([("updatedAt", -1)])
