"""
클래스 별칭 해석 모듈.

PHP 소스에서 클래스 선언 이전 부분(namespace 문과 use 문)만 어휘적으로 스캔하여
"정규화된 이름 → 코드에서 쓰는 이름" 테이블(AliasTable)을 만들고,
어노테이션에 쓰인 짧은 이름을 정규화된 클래스 이름으로 해석한다.
컴파일러나 PHP 인터프리터를 호출하지 않는다.

지원하는 use 문 형태:
    use A\\B;                      → {"A\\B": "B"}
    use A\\B as C;                 → {"A\\B": "C"}
    use A\\{B, C as D};            → {"A\\B": "B", "A\\C": "D"}
    use function A\\f; / use const A\\X;   (클래스가 아니므로 무시)

이름 해석 순서 (find_qualified_name):
1. 테이블의 키(정규화된 이름) 자체와 일치
2. 별칭과 정확히 일치
3. 별칭 네임스페이스 접두사 일치 (예: "Alias\\Sub\\Cls")
4. 호스트 클래스의 네임스페이스에 있다고 가정 (이 경우에만 존재 여부 확인)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import NamedTuple

from docblock_reader.errors import UnbalancedImportGroup
from docblock_reader.models import AliasTable

logger = logging.getLogger(__name__)

NAMESPACE_SEPARATOR = "\\"

# 클래스형 선언이 시작되는 줄 (이 줄부터는 스캔하지 않는다)
_DECLARATION_LINE = re.compile(
    r"^\s*(?:(?:abstract|final|readonly)\s+)*(?:class|interface|trait|enum)\s",
    re.IGNORECASE,
)

_WORD_CHARS = re.compile(r"[\w\\]+")


class _Token(NamedTuple):
    kind: str      # "word" 또는 "punct"
    text: str
    line: int


def pre_declaration_content(source: str) -> str:
    """
    클래스 선언 이전의 소스(namespace 문, use 문)만 잘라낸다.

    첫 번째로 class / abstract class / final class / interface / trait / enum 으로
    시작하는 줄에서 멈춘다. 파일 전체를 스캔하지 않으므로 이후 코드의 클로저
    use 절 같은 오탐을 피할 수 있다. 선언 줄을 찾지 못하면 전체를 반환한다.
    """
    lines: list[str] = []
    for line in source.splitlines(keepends=True):
        if _DECLARATION_LINE.match(line):
            break
        lines.append(line)
    return "".join(lines)


class ClassAliasFinder:
    """
    namespace/use 문을 해석하여 별칭 테이블을 만들고 이름을 해석하는 해석기.

    class_exists는 "이 정규화된 이름의 타입이 존재하는가"를 답하는 함수로,
    보통 AnnotationRegistry의 __contains__ 또는 소스 인덱스가 제공한다.
    """

    def __init__(self, class_exists: Callable[[str], bool] | None = None):
        self.class_exists = class_exists or (lambda name: False)

    def resolve_aliases(self, source: str, file_path: str | None = None) -> AliasTable:
        """
        클래스 선언 이전 소스를 스캔하여 별칭 테이블을 만든다.

        Args:
            source: PHP 파일 전문 (선언 이전 부분만 스캔된다)
            file_path: 오류 메시지용 파일 경로

        Returns:
            앰비언트 네임스페이스와 import 매핑을 담은 AliasTable

        Raises:
            UnbalancedImportGroup: 여는 그룹 없이 닫는 중괄호를 만났을 때
        """
        tokens = _lex(pre_declaration_content(source))
        table = AliasTable()
        i = 0
        previous: _Token | None = None

        while i < len(tokens):
            token = tokens[i]
            at_statement_start = previous is None or previous.text in (";", "{", "}")
            keyword = token.text.lower() if token.kind == "word" else ""

            if keyword == "namespace" and at_statement_start:
                i = self._namespace_statement(tokens, i + 1, table)
            elif keyword == "use" and at_statement_start:
                i = self._use_statement(tokens, i + 1, table, file_path)
            else:
                i += 1
            previous = tokens[i - 1]

        logger.debug(
            "별칭 테이블 생성: namespace=%s, imports=%d개 (%s)",
            table.namespace, len(table.imports), file_path or "<source>",
        )
        return table

    def find_qualified_name(
        self,
        table: AliasTable,
        name: str,
        must_exist: bool = False,
    ) -> str | None:
        """
        어노테이션에 쓰인 이름을 정규화된 클래스 이름으로 해석한다.

        Args:
            table: 호스트 클래스의 별칭 테이블
            name: 짧은 이름, 부분 정규화된 이름, 또는 정규화된 이름
            must_exist: True면 해석 실패 시 None, False면 입력 이름을 그대로 반환

        Returns:
            정규화된 이름 (앞의 역슬래시 제거) 또는 None
        """
        name = name.strip()
        lookup = name.lstrip(NAMESPACE_SEPARATOR)
        if not lookup:
            return None if must_exist else name

        if not name.startswith(NAMESPACE_SEPARATOR):
            # 1. 정규화된 이름 키와 일치
            if lookup in table.imports:
                return lookup

            # 2~3. 별칭 일치 또는 별칭 네임스페이스 접두사 일치 (나중 use 문이 우선)
            resolved = None
            for qualified, local in table.imports.items():
                if name == local:
                    resolved = qualified
                elif name.startswith(local + NAMESPACE_SEPARATOR):
                    resolved = qualified + name[len(local):]
            if resolved:
                return resolved

            # 4. 호스트 클래스와 같은 네임스페이스라고 가정 (존재 여부를 확인한다)
            if table.namespace:
                candidate = f"{table.namespace}{NAMESPACE_SEPARATOR}{lookup}"
                if self.class_exists(candidate):
                    return candidate

        if self.class_exists(lookup):
            return lookup
        return None if must_exist else name

    def find_aliases_for_class(self, table: AliasTable, class_name: str) -> list[str]:
        """
        정규화된 클래스 이름을 코드에서 가리킬 수 있는 모든 이름을 찾는다.

        예: use Vendor as V; namespace App; 에서 "Vendor\\Mapping\\Table"
            → ["V\\Mapping\\Table"]

        Returns:
            발견 순서대로의 별칭 리스트 (중복 없음)
        """
        class_name = class_name.lstrip(NAMESPACE_SEPARATOR)
        aliases: list[str] = []
        scopes = list(table.imports.items())
        if table.namespace:
            scopes.insert(0, (table.namespace, ""))

        for qualified, local in scopes:
            if class_name == qualified and local:
                alias = local
            elif class_name.startswith(qualified + NAMESPACE_SEPARATOR):
                rest = class_name[len(qualified) + 1:]
                alias = NAMESPACE_SEPARATOR.join(part for part in (local, rest) if part)
            else:
                continue
            if alias not in aliases:
                aliases.append(alias)
        return aliases

    def _namespace_statement(self, tokens: list[_Token], i: int, table: AliasTable) -> int:
        """namespace A\\B; 또는 namespace A\\B { ... } 에서 네임스페이스를 읽는다."""
        parts: list[str] = []
        while i < len(tokens) and tokens[i].text not in (";", "{"):
            if tokens[i].kind == "word":
                parts.append(tokens[i].text)
            i += 1
        table.namespace = "".join(parts).strip(NAMESPACE_SEPARATOR)
        return i + 1

    def _use_statement(
        self,
        tokens: list[_Token],
        i: int,
        table: AliasTable,
        file_path: str | None,
    ) -> int:
        """
        use 문 하나(세미콜론까지)를 읽어 테이블에 기록한다.

        그룹 use 문(use A\\{B, C as D};)은 "{" 앞부분을 공통 접두사로 사용한다.

        Returns:
            세미콜론 다음 토큰 인덱스
        """
        if i < len(tokens) and tokens[i].text.lower() in ("function", "const"):
            # 함수/상수 import는 클래스 해석과 무관하다
            while i < len(tokens) and tokens[i].text != ";":
                i += 1
            return i + 1

        prefix = ""
        current = ""
        alias: str | None = None
        expecting_alias = False

        while i < len(tokens):
            token = tokens[i]
            if token.kind == "word":
                if token.text.lower() == "as":
                    expecting_alias = True
                elif expecting_alias:
                    alias = token.text
                    expecting_alias = False
                else:
                    current += token.text
            elif token.text == ",":
                self._finalise(prefix + current, alias, table)
                current, alias = "", None
            elif token.text == "{":
                prefix += current
                current = ""
            elif token.text == "}":
                if not prefix:
                    raise UnbalancedImportGroup(
                        f"예상하지 못한 닫는 중괄호 }}: {token.line}번째 줄 ({file_path or '<source>'})",
                        context={"line": token.line, "file": file_path},
                    )
                self._finalise(prefix + current, alias, table)
                prefix, current, alias = "", "", None
            elif token.text == ";":
                self._finalise(prefix + current, alias, table)
                return i + 1
            i += 1

        return i

    def _finalise(self, statement: str, alias: str | None, table: AliasTable) -> None:
        """
        use 문 하나를 테이블에 기록한다.

        별칭 import도 정규화된 이름을 키로 사용하며, 같은 문장이 네임스페이스 상대 이름으로
        해석된 경우 상대 이름 키로 남아 있던 이전 항목은 제거한다.
        """
        statement = statement.strip()
        if not statement:
            return

        qualified = statement.lstrip(NAMESPACE_SEPARATOR)
        if (
            not statement.startswith(NAMESPACE_SEPARATOR)
            and table.namespace
            and self.class_exists(f"{table.namespace}{NAMESPACE_SEPARATOR}{qualified}")
        ):
            qualified = f"{table.namespace}{NAMESPACE_SEPARATOR}{qualified}"
            table.imports.pop(statement, None)

        # 다시 import된 이름은 맨 뒤로 옮겨 나중 use 문이 우선하게 한다
        table.imports.pop(qualified, None)
        table.imports[qualified] = alias or qualified.rsplit(NAMESPACE_SEPARATOR, 1)[-1]


class ScopedAliasFinder:
    """
    특정 호스트 클래스의 별칭 테이블에 묶인 이름 해석 능력 객체.

    GenericAnnotation 분해와 하이드레이터에 클로저 대신 전달된다.
    """

    def __init__(self, table: AliasTable, finder: ClassAliasFinder):
        self.table = table
        self.finder = finder

    def find_qualified_name(self, name: str, must_exist: bool = False) -> str | None:
        return self.finder.find_qualified_name(self.table, name, must_exist)

    def find_aliases(self, class_name: str) -> list[str]:
        return self.finder.find_aliases_for_class(self.table, class_name)


def _lex(source: str) -> list[_Token]:
    """
    선언 이전 소스를 단어와 구두점 토큰으로 나눈다.

    주석(//, #, /* */)과 문자열 리터럴은 건너뛴다. 단어에는 역슬래시가 포함되므로
    "Some\\Ns\\Cls"는 하나의 토큰이다.
    """
    tokens: list[_Token] = []
    n = len(source)
    i = 0
    line = 1

    while i < n:
        ch = source[i]
        if ch == "\n":
            line += 1
            i += 1
        elif ch.isspace():
            i += 1
        elif source.startswith("<?php", i):
            i += 5
        elif source.startswith("<?", i) or source.startswith("?>", i):
            i += 2
        elif source.startswith("//", i) or (ch == "#" and not source.startswith("#[", i)):
            end = source.find("\n", i)
            i = n if end == -1 else end
        elif source.startswith("/*", i):
            end = source.find("*/", i + 2)
            end = n if end == -1 else end + 2
            line += source.count("\n", i, end)
            i = end
        elif ch in "\"'":
            end = i + 1
            while end < n and source[end] != ch:
                end += 2 if source[end] == "\\" else 1
            line += source.count("\n", i, end)
            i = end + 1
        else:
            match = _WORD_CHARS.match(source, i)
            if match:
                tokens.append(_Token("word", match.group(0), line))
                i = match.end()
            else:
                tokens.append(_Token("punct", ch, line))
                i += 1

    return tokens
