# recipe_lab/services/json_extract.py
# LLM 응답 텍스트 → JSON 추출 + 결과 타입(Ok / Fallback / Fatal)
# 순서: 코드펜스 제거 → trim → 첫 [ 또는 { ~ 마지막 짝 괄호 → 파싱 → 실패 시 정규식 추출 1회 재시도

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Generic, Iterable, List, Literal, Optional, TypeVar, Union

log = logging.getLogger(__name__)

T = TypeVar("T")

Kind = Literal["array", "object"]

_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?", re.I)
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

_BRACKETS = {"array": ("[", "]"), "object": ("{", "}")}


class JsonExtractError(ValueError):
    pass


class ShapeError(ValueError):
    """Parsed JSON does not have the expected structure."""


# ------------------------------
# 결과 타입
# ------------------------------

@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Fallback(Generic[T]):
    value: T
    reason: str


@dataclass(frozen=True)
class Fatal:
    error: Exception


Outcome = Union[Ok[T], Fallback[T], Fatal]


# ------------------------------
# 추출
# ------------------------------

def _detect_kind(text: str) -> Optional[Kind]:
    a, o = text.find("["), text.find("{")
    if a == -1 and o == -1:
        return None
    if o == -1 or (a != -1 and a < o):
        return "array"
    return "object"


def clean_json_text(text: str, kind: Optional[Kind] = None) -> str:
    """Strip fences and surrounding prose. Clean JSON comes back unchanged."""
    cleaned = _FENCE_RE.sub("", text or "").replace("```", "")
    cleaned = cleaned.strip()

    kind = kind or _detect_kind(cleaned)
    if kind is None:
        return cleaned
    opener, closer = _BRACKETS[kind]
    start, end = cleaned.find(opener), cleaned.rfind(closer)
    if start != -1 and end > start:
        cleaned = cleaned[start:end + 1]
    return cleaned


def extract_json(text: str, kind: Optional[Kind] = None) -> Any:
    cleaned = clean_json_text(text, kind)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as first:
        kind = kind or _detect_kind(cleaned)
        pattern = _OBJECT_RE if kind == "object" else _ARRAY_RE
        m = pattern.search(cleaned)
        if not m or m.group(0) == cleaned:
            raise JsonExtractError(f"unparsable JSON: {first}") from first
        log.debug("first parse failed, retrying regex-extracted span")
        try:
            return json.loads(m.group(0))
        except json.JSONDecodeError as second:
            raise JsonExtractError(f"unparsable JSON: {second}") from second


# ------------------------------
# 형태 검사
# ------------------------------

def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def require_list(value: Any) -> List[Any]:
    if not isinstance(value, list):
        raise ShapeError("response is not an array")
    return value


def require_object(value: Any) -> dict:
    if not isinstance(value, dict):
        raise ShapeError("response is not an object")
    return value


def check_fields(item: Any, numbers: Iterable[str] = (), strings: Iterable[str] = ()) -> dict:
    if not isinstance(item, dict):
        raise ShapeError(f"element is not an object: {item!r}")
    for f in numbers:
        if not _is_number(item.get(f)):
            raise ShapeError(f"field {f!r} must be a number: {item!r}")
    for f in strings:
        if not isinstance(item.get(f), str):
            raise ShapeError(f"field {f!r} must be a string: {item!r}")
    return item
