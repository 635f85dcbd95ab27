# recipe_lab/core/logging_setup.py
# 로깅 설정 + 요청 단위 액세스 로그(JSON 한 줄)

from __future__ import annotations

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import Request

access_log = logging.getLogger("recipe_lab.access")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def json_line(**fields: Any) -> str:
    return json.dumps({"ts": _now_iso(), **fields}, default=str)


async def request_id_and_access_log(request: Request, call_next):
    # req-id 발급/전파
    req_id = request.headers.get("X-Req-Id") or uuid.uuid4().hex
    request.state.req_id = req_id

    start = time.perf_counter()
    status = 500
    response = None
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        latency_ms = round((time.perf_counter() - start) * 1000.0, 2)
        access_log.info(json_line(
            reqId=req_id,
            method=request.method,
            path=request.url.path,
            status=status,
            latency=latency_ms,
        ))
        if response is not None:
            response.headers["X-Req-Id"] = req_id
