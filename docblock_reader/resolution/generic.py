"""
제네릭 어노테이션 분해 모듈.

등록된 타입이 없는 어노테이션(@var, @param, @return 등)의 값을
관례적인 문서 주석 형식에 따라 타입/변수/설명으로 나눈다.

분해 규칙 (우선순위순):
1. 첫 "$" 토큰(변수)을 찾는다. 그 앞은 변수 앞 텍스트, 그 뒤(구분 공백 하나 제외)는 설명.
2. 변수 앞 텍스트가 한 단어면 타입 이름으로 보고 별칭 해석을 시도한다.
   여러 단어면 각 단어를 순서대로 pre_variable_parts에 저장한다.
3. 변수가 전혀 없을 때, 남은 텍스트가 한 단어면 별칭 해석 후 타입으로,
   여러 단어면 전체를 설명(comment)으로 저장한다.

예:
    "int $i Some text"                 → type="int", variable="$i", comment="Some text"
    "Several words here $variableName" → pre_variable_parts=["Several", "words", "here"]
    "MyClass"                          → type="App\\MyClass" (별칭 해석 결과)
"""

from __future__ import annotations

import re
from typing import Any, Protocol

VARIABLE_SIGIL = "$"

# "$"로 시작해서 다음 공백 전까지가 변수 토큰
_VARIABLE_PATTERN = re.compile(re.escape(VARIABLE_SIGIL) + r"\S*")


class QualifiedNameFinder(Protocol):
    """짧은 이름을 정규화된 이름으로 해석하는 능력 객체 (ScopedAliasFinder가 구현)."""

    def find_qualified_name(self, name: str, must_exist: bool = False) -> str | None: ...


def decompose(value: str, finder: QualifiedNameFinder | None = None) -> dict[str, Any]:
    """
    제네릭 어노테이션 값을 구성 요소로 분해한다.

    Args:
        value: 어노테이션 이름 뒤의 원시 값
        finder: 타입 후보 단어를 정규화된 이름으로 해석할 객체. None이면 단어를 그대로 사용

    Returns:
        GenericAnnotation 필드 이름 → 값 딕셔너리 (type, variable, pre_variable_parts, comment)
    """
    parts: dict[str, Any] = {}
    comment_start = 0

    match = _VARIABLE_PATTERN.search(value)
    if match:
        before = value[:match.start()].split()
        if len(before) == 1:
            parts["type"] = _resolve_type(before[0], finder)
        elif before:
            parts["pre_variable_parts"] = before
        parts["variable"] = match.group(0)
        # 변수 뒤 구분 공백 하나를 건너뛴 위치부터 설명
        comment_start = match.end() + 1

    if len(value) > comment_start:
        remainder = value[comment_start:].strip()
        if not remainder:
            return parts
        if match is None and len(remainder.split()) == 1:
            # 어노테이션 이름 뒤에 한 단어만 있음 → 클래스 이름으로 해석 시도
            parts["type"] = _resolve_type(remainder, finder)
        else:
            parts["comment"] = remainder

    return parts


def _resolve_type(word: str, finder: QualifiedNameFinder | None) -> str:
    if finder is None:
        return word
    return finder.find_qualified_name(word, must_exist=False) or word
