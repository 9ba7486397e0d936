"""
어노테이션 값 파서 모듈.

어노테이션의 인자 문자열을 속성 맵(AttributeMap)으로 변환한다.

값 언어 문법:
    @Name( key = "string" | bareword | true | false | number | { list, of, values } , ... )

변환 전략:
    값 언어의 구두점을 JSON 구두점으로 번역한 뒤 json.loads로 엄격하게 파싱한다.
    - ( ) → { }   (맵)
    - { } → [ ]   (리스트)
    - key =       → "key":
    - bareword    → "bareword" (true/false/null/숫자는 그대로)
    - 문자열 안의 역슬래시는 이스케이프, 개행/탭은 제거

예:
    parse_attributes('(name="test", lazyLoad=true, orderBy={"a","b"})')
    → {"name": "test", "lazyLoad": True, "orderBy": ["a", "b"]}
"""

from __future__ import annotations

import json
import re
from typing import Any, NamedTuple

from docblock_reader.errors import MalformedValue
from docblock_reader.models import AttributeMap

# 키 없이 나열된 값은 이 키로 모인다 (예: @Route("/path", name="x"))
POSITIONAL_KEY = "value"

# 정규화 후에도 허용하는 최대 괄호 중첩 (값 언어는 두 단계까지만 의미가 있다)
MAX_NESTING = 32

_PUNCTUATION = "(){},="
_JSON_NUMBER = re.compile(r"-?(0|[1-9]\d*)(\.\d+)?([eE][+-]?\d+)?")
_LITERALS = {"true", "false", "null"}
_STRIPPED_CHARS = str.maketrans("", "", "\r\n\t")

_CLOSERS = {"(": ")", "{": "}"}


class _Token(NamedTuple):
    kind: str      # "punct", "string", "word"
    text: str


def parse_attributes(raw_value: str) -> AttributeMap:
    """
    어노테이션 원시 값을 속성 맵으로 변환한다.

    Args:
        raw_value: 어노테이션 이름 뒤의 원시 값 (예: '(name="test")')

    Returns:
        키가 공백 제거된 속성 맵. (name=value, ...) 구조가 없으면 빈 맵
        (위치 값은 호출자가 parse_positional로 처리한다).

    Raises:
        MalformedValue: 괄호 불일치 등으로 정규화 후에도 파싱할 수 없을 때
    """
    raw_value = raw_value.strip()
    if not raw_value.startswith("("):
        return {}

    data = _load(raw_value)
    if not isinstance(data, dict):
        return {}
    return _trim_keys(data)


def parse_positional(raw_value: str) -> Any:
    """
    키 없이 괄호 안에 나열된 위치 값을 반환한다.

    예: '({"Default"})' → ["Default"], '("test")' → "test"

    Returns:
        위치 값이 하나면 그 값, 여럿이면 리스트. 위치 값 구조가 아니면 None.
    """
    raw_value = raw_value.strip()
    if not raw_value.startswith("("):
        return None

    data = _load(raw_value)
    if not isinstance(data, list) or not data:
        return None
    return data[0] if len(data) == 1 else data


def normalize(raw_value: str) -> str:
    """
    값 언어 문자열을 JSON 텍스트로 정규화한다.

    Raises:
        MalformedValue: 문자열이 닫히지 않았거나 괄호 짝이 맞지 않을 때
    """
    tokens = _lex(raw_value)
    _check_balance(tokens, raw_value)
    emitter = _JsonEmitter(tokens, raw_value)
    text = emitter.value()
    if emitter.pos != len(tokens):
        raise MalformedValue(
            f"어노테이션 값 끝에 해석할 수 없는 내용이 있습니다: {raw_value!r}",
            context={"value": raw_value},
        )
    return text


def _load(raw_value: str) -> Any:
    text = normalize(raw_value)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedValue(
            f"어노테이션 값을 파싱할 수 없습니다: {raw_value!r} ({exc.msg})",
            context={"value": raw_value, "normalized": text},
        ) from exc


def _trim_keys(data: dict[str, Any]) -> dict[str, Any]:
    """최상위와 한 단계 중첩 맵의 키 공백을 제거한다 (값은 이미 정리되어 있다고 가정)."""
    cleaned: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            value = {str(k).strip(): v for k, v in value.items()}
        cleaned[str(key).strip()] = value
    return cleaned


def _lex(raw_value: str) -> list[_Token]:
    """
    값 언어 문자열을 토큰으로 나눈다.

    따옴표 상태를 추적하므로 문자열 안의 "=", ",", 괄호는 구분자로 취급되지 않는다.
    큰따옴표 문자열 안의 "" 는 따옴표 문자 하나를 의미한다.
    """
    tokens: list[_Token] = []
    n = len(raw_value)
    i = 0

    while i < n:
        ch = raw_value[i]
        if ch.isspace():
            i += 1
        elif ch in _PUNCTUATION:
            tokens.append(_Token("punct", ch))
            i += 1
        elif ch in "\"'":
            chars: list[str] = []
            i += 1
            while True:
                if i >= n:
                    raise MalformedValue(
                        f"닫히지 않은 문자열이 있습니다: {raw_value!r}",
                        context={"value": raw_value},
                    )
                if raw_value[i] == ch:
                    if ch == '"' and i + 1 < n and raw_value[i + 1] == '"':
                        chars.append('"')
                        i += 2
                        continue
                    i += 1
                    break
                chars.append(raw_value[i])
                i += 1
            tokens.append(_Token("string", "".join(chars).translate(_STRIPPED_CHARS)))
        else:
            start = i
            while i < n and raw_value[i] not in _PUNCTUATION and raw_value[i] not in "\"'":
                i += 1
            word = " ".join(raw_value[start:i].split())
            if word:
                tokens.append(_Token("word", word))

    return tokens


def _check_balance(tokens: list[_Token], raw_value: str) -> None:
    stack: list[str] = []
    for token in tokens:
        if token.kind != "punct":
            continue
        if token.text in _CLOSERS:
            stack.append(_CLOSERS[token.text])
            if len(stack) > MAX_NESTING:
                raise MalformedValue(
                    f"어노테이션 값의 중첩이 너무 깊습니다: {raw_value!r}",
                    context={"value": raw_value},
                )
        elif token.text in ")}":
            if not stack or stack.pop() != token.text:
                raise MalformedValue(
                    f"괄호 짝이 맞지 않습니다: {raw_value!r}",
                    context={"value": raw_value},
                )
    if stack:
        raise MalformedValue(
            f"닫히지 않은 괄호가 있습니다: {raw_value!r}",
            context={"value": raw_value},
        )


class _JsonEmitter:
    """토큰 스트림을 JSON 텍스트로 다시 쓰는 작은 재귀 하강 변환기."""

    def __init__(self, tokens: list[_Token], raw_value: str):
        self.tokens = tokens
        self.raw_value = raw_value
        self.pos = 0

    def value(self) -> str:
        token = self._peek()
        if token is None:
            self._fail("값이 필요한 위치에서 입력이 끝났습니다")
        if token.kind == "punct":
            if token.text in _CLOSERS:
                return self._group()
            self._fail(f"예상하지 못한 구두점 {token.text!r}")
        self.pos += 1
        if token.kind == "string":
            return json.dumps(token.text)
        return _scalar(token.text)

    def _group(self) -> str:
        """( ... ) 또는 { ... } 그룹. 키가 하나라도 있으면 객체, 아니면 배열."""
        opener = self.tokens[self.pos].text
        closer = _CLOSERS[opener]
        self.pos += 1

        keyed: list[tuple[str, str]] = []
        positional: list[str] = []
        while True:
            token = self._peek()
            if token is None:
                self._fail("닫는 괄호 없이 입력이 끝났습니다")
            if token.kind == "punct" and token.text == closer:
                self.pos += 1
                break
            if token.kind == "punct" and token.text == ",":
                # 빈 요소와 끝의 쉼표는 무시한다
                self.pos += 1
                continue

            if self._at_key():
                key = self.tokens[self.pos].text.strip()
                self.pos += 2
                keyed.append((key, self.value()))
            else:
                positional.append(self.value())

            token = self._peek()
            if token is not None and token.kind == "punct" and token.text == ",":
                self.pos += 1
            elif token is None or token.text != closer:
                self._fail("요소 사이에 쉼표가 필요합니다")

        if not keyed:
            return "[" + ", ".join(positional) + "]"
        if positional:
            value = positional[0] if len(positional) == 1 else "[" + ", ".join(positional) + "]"
            keyed.insert(0, (POSITIONAL_KEY, value))
        return "{" + ", ".join(f"{json.dumps(key)}: {value}" for key, value in keyed) + "}"

    def _at_key(self) -> bool:
        if self.pos + 1 >= len(self.tokens):
            return False
        token, following = self.tokens[self.pos], self.tokens[self.pos + 1]
        return token.kind in ("word", "string") and following == _Token("punct", "=")

    def _peek(self) -> _Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _fail(self, reason: str):
        raise MalformedValue(
            f"어노테이션 값을 정규화할 수 없습니다 ({reason}): {self.raw_value!r}",
            context={"value": self.raw_value, "position": self.pos},
        )


def _scalar(word: str) -> str:
    """bareword를 JSON 스칼라로. true/false/null과 숫자는 네이티브 타입을 유지한다."""
    lowered = word.lower()
    if lowered in _LITERALS:
        return lowered
    if _JSON_NUMBER.fullmatch(word):
        return word
    return json.dumps(word)
