# recipe_lab/services/openai_client.py
# OpenAI Chat Completions 래퍼: 호출 1회 = 논리적 완성 1회 (일시 오류만 재시도)
# - JSON이 필요한 곳은 response_format=json_object
# - 빈 응답은 호출 실패로 본다

from __future__ import annotations

import asyncio
import logging
import random
from typing import Optional

from openai import (
    APIConnectionError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)

log = logging.getLogger(__name__)

# 429 / 5xx / 연결·타임아웃
TRANSIENT_ERRORS = (RateLimitError, InternalServerError, APIConnectionError)


class LLMNotReady(Exception):
    # 키 없음 등 호출 전 준비 실패
    pass


class LLMEmptyResponse(Exception):
    pass


class LLMClient:
    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        client: Optional[AsyncOpenAI] = None,
        max_attempts: int = 3,
        base_delay: float = 1.0,
    ) -> None:
        if client is None:
            if not api_key:
                raise LLMNotReady("OPENAI_API_KEY not set")
            client = AsyncOpenAI(api_key=api_key, timeout=60.0, max_retries=0)
        self._client = client
        self.model = model
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    async def complete(
        self,
        system: str,
        user: str,
        *,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        temperature: Optional[float] = None,
    ) -> str:
        """Run one chat completion and return the stripped message text.

        Raises LLMEmptyResponse when the model answers with no content. Any
        non-transient SDK error propagates unchanged.
        """
        kwargs = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if temperature is not None:
            kwargs["temperature"] = temperature
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        chat = await self._create_with_retry(**kwargs)

        text = chat.choices[0].message.content if chat and chat.choices else None
        text = (text or "").strip()
        if not text:
            log.warning("chat completion returned empty content model=%s", self.model)
            raise LLMEmptyResponse("Failed to receive content from model.")
        return text

    async def _create_with_retry(self, **kwargs):
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._client.chat.completions.create(**kwargs)
            except TRANSIENT_ERRORS as e:
                if attempt == self.max_attempts:
                    raise
                # 1, 2, 4초 ... + 작은 지터
                delay = self.base_delay * (2 ** (attempt - 1)) + random.random() * 0.3
                log.warning(
                    "chat completion transient error (attempt %d/%d): %s; retry in %.1fs",
                    attempt, self.max_attempts, type(e).__name__, delay,
                )
                await asyncio.sleep(delay)
