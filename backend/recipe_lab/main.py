# recipe_lab/main.py
# FastAPI 앱 초기화 및 라우터 설정
# 라우터는 기능별로 분리 (레시피 / AI / 영양 / 장보기 / 사진 / 드래프트)

from __future__ import annotations

import logging
from asyncio import sleep

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recipe_lab.api.routes_ai import router as ai_router
from recipe_lab.api.routes_drafts import router as drafts_router
from recipe_lab.api.routes_grocery import router as grocery_router
from recipe_lab.api.routes_nutrition import router as nutrition_router
from recipe_lab.api.routes_recipes import router as recipes_router
from recipe_lab.api.routes_unsplash import router as unsplash_router
from recipe_lab.core.config import get_settings
from recipe_lab.core.deps import close_clients
from recipe_lab.core.errors import install_error_handlers
from recipe_lab.core.logging_setup import configure_logging, request_id_and_access_log
from recipe_lab.db.indexes import ensure_indexes
from recipe_lab.db.init import close_db, get_db, init_db

log = logging.getLogger("recipe_lab")

DB_INIT_TRIES = 20

configure_logging(get_settings().LOG_LEVEL)

app = FastAPI(title="Recipe Lab - API", version="0.1.0")

# CORS: 프론트 localhost:3000 허용
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Req-Id"],
)
app.middleware("http")(request_id_and_access_log)

install_error_handlers(app)


# 앱 시작/종료 이벤트 핸들러
@app.on_event("startup")
async def on_startup() -> None:
    # 1) DB 먼저 붙는다 (최대 20회, 1초 간격)
    db = None
    for i in range(DB_INIT_TRIES):
        try:
            db = await init_db()
            log.info("[startup] db ready")
            break
        except Exception as e:
            log.warning("[startup] db init retry %d: %s", i + 1, e)
            await sleep(1.0)
    if db is None:
        log.error("[startup] db init failed after retries")
        return

    # 2) 인덱스 보장
    try:
        await ensure_indexes()
        log.info("[startup] indexes ensured")
    except Exception as e:
        log.error("[startup] ensure_indexes failed: %s", e)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_clients()
    await close_db()


@app.get("/")
async def root():
    return {"status": "ok"}


@app.get("/health")
async def health():
    ok = {"status": "ok", "db": "skip"}
    try:
        await get_db().command("ping")
        ok["db"] = "ok"
    except Exception as e:
        ok["db"] = f"error: {e}"
    return ok


# 라우터 prefix는 각 파일 내에서 정의함, 중복 prefix 금지
app.include_router(recipes_router)
app.include_router(ai_router)
app.include_router(nutrition_router)
app.include_router(grocery_router)
app.include_router(unsplash_router)
app.include_router(drafts_router)
