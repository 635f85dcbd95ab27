# recipe_lab/core/config.py
# 환경변수 로딩 (.env): Mongo / OpenAI / Unsplash 키는 필수, 모델명만 선택

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    MONGODB_URI: str
    MONGODB_DB: str = "recipe_lab"
    MONGODB_URI_TEST: Optional[str] = None
    MONGODB_DB_TEST: Optional[str] = None
    APP_ENV: str = "development"  # "test" selects the *_TEST database

    OPENAI_API_KEY: str
    OPENAI_RECIPE_MODEL: str = "gpt-4o-mini"

    UNSPLASH_ACCESS_KEY: str
    UNSPLASH_UTM_SOURCE: str = "recipe-lab"

    LOG_LEVEL: str = "INFO"

    @property
    def is_test(self) -> bool:
        return self.APP_ENV.lower() == "test"

    @property
    def mongo_uri(self) -> str:
        if self.is_test:
            return self.MONGODB_URI_TEST or self.MONGODB_URI
        return self.MONGODB_URI

    @property
    def mongo_db_name(self) -> str:
        if self.is_test:
            return self.MONGODB_DB_TEST or f"{self.MONGODB_DB}_test"
        return self.MONGODB_DB


@lru_cache
def get_settings() -> Settings:
    return Settings()
