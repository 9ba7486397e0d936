"""
주석 블록 토크나이저 모듈.

docblock(/** ... */) 문자열을 문자 단위로 스캔하여
(이름, 원시 값, 자식 조각) 형태의 RawFragment 리스트로 나눈다.

처리 규칙:
- "@" 시길이 단어 경계에 있고 뒤에 이름 문자가 오면 새 조각의 시작이다.
- 이름은 첫 공백 또는 "(" 에서 끝난다.
- "("로 시작한 조각은 짝이 맞는 ")"에서 끝나고, 그 외에는 다음 최상위 "@" 또는
  블록 끝까지가 값이다.
- 괄호 안에서 "@이름(" 형태를 만나면 자식 조각으로 보고, 짝이 맞는 ")"까지를
  그대로 잘라 재귀적으로 토크나이즈한 뒤 부모 값에서는 "_child_<n>"으로 치환한다.
- 줄 머리의 연속 표시("*")는 값에서 제거된다.
- 작은따옴표와 큰따옴표 문자열 안의 괄호와 "@"는 구조로 보지 않는다.

예:
    /**
     * @var int $id
     * @Outer(inner=@Inner(x=1))
     */
    → [RawFragment(name="var", raw_value="int $id"),
       RawFragment(name="Outer", raw_value="(inner=_child_0)",
                   children=[RawFragment(name="Inner", raw_value="(x=1)")])]
"""

from __future__ import annotations

import re

from docblock_reader.models import RawFragment

SIGIL = "@"

# 자식 어노테이션은 한 단계까지만 추출한다 (더 깊은 중첩은 자식 값에 그대로 남는다)
MAX_CHILD_DEPTH = 1

# 어노테이션 이름: 문자/밑줄/역슬래시로 시작
_NAME_PATTERN = re.compile(r"[A-Za-z_\\][\w\\.:-]*")

# 줄 머리의 공백 + 연속 표시 "*" (단, 닫는 "*/"는 제외)
_CONTINUATION_PATTERN = re.compile(r"^[ \t]*\*(?!/)", re.MULTILINE)

# 시길 바로 앞에 올 수 있는 문자 (단어 경계)
_BOUNDARY_CHARS = " \t\r\n*({,="

# 문자열 구분자 (안쪽의 괄호와 시길은 무시한다)
_QUOTES = "\"'"


class DocblockTokenizer:
    """
    주석 블록을 RawFragment 리스트로 변환하는 토크나이저.

    상태를 갖지 않으므로 여러 선언에서 하나의 인스턴스를 공유해도 된다.
    중첩 추적은 반복문과 카운터로 처리하므로, 괄호가 심하게 어긋난 입력에서도
    재귀 깊이가 아닌 입력 길이에 비례하여 종료된다.
    """

    def tokenize(self, comment: str) -> list[RawFragment]:
        """
        주석 블록에서 어노테이션 조각을 추출한다.

        Args:
            comment: docblock 전문 (/** ... */ 포함 여부 무관)

        Returns:
            소스 순서대로의 RawFragment 리스트. 같은 이름의 반복도 그대로 유지된다.
        """
        if not comment:
            return []
        return self._tokenize(self._strip_decoration(comment), depth=0)

    def _strip_decoration(self, comment: str) -> str:
        """주석 구분자(/** */)와 줄 머리의 연속 표시를 제거한다."""
        text = comment.strip()
        if text.startswith("/**"):
            text = text[3:]
        elif text.startswith("/*"):
            text = text[2:]
        if text.endswith("*/"):
            text = text[:-2]
        return _CONTINUATION_PATTERN.sub("", text)

    def _tokenize(self, text: str, depth: int) -> list[RawFragment]:
        fragments: list[RawFragment] = []
        n = len(text)
        i = self._next_sigil(text, 0)

        while i < n:
            match = _NAME_PATTERN.match(text, i + 1)
            if not match:
                i = self._next_sigil(text, i + 1)
                continue

            name = match.group(0)
            j = match.end()
            if j < n and text[j] == "(":
                # 괄호 조각: 짝이 맞는 ")"에서 끝난다
                end, value, children = self._scan_parenthesized(text, j, depth)
                fragments.append(RawFragment(name=name, raw_value=value.strip(), children=children))
            else:
                # 괄호 없는 조각: 다음 최상위 시길 또는 블록 끝까지가 값
                end = self._next_sigil(text, j)
                fragments.append(RawFragment(name=name, raw_value=text[j:end].strip()))

            i = self._next_sigil(text, end)

        return fragments

    def _scan_parenthesized(
        self,
        text: str,
        start: int,
        depth: int,
    ) -> tuple[int, str, list[RawFragment]]:
        """
        start 위치의 "("부터 짝이 맞는 ")"까지 스캔하며 자식 조각을 분리한다.

        Args:
            text: 장식이 제거된 주석 텍스트
            start: "("의 인덱스
            depth: 현재 자식 중첩 깊이 (0 = 최상위 조각)

        Returns:
            (끝 인덱스, 플레이스홀더로 치환된 값, 자식 조각 리스트) 튜플.
            짝이 맞지 않으면 블록 끝이 끝 인덱스가 된다.
        """
        n = len(text)
        pieces: list[str] = []
        children: list[RawFragment] = []
        segment_start = start
        level = 0
        quote = ""
        k = start

        while k < n:
            ch = text[k]
            if quote:
                if ch == quote:
                    quote = ""
            elif ch in _QUOTES:
                quote = ch
            elif ch == "(":
                level += 1
            elif ch == ")":
                level -= 1
                if level == 0:
                    k += 1
                    break
            elif ch == SIGIL and depth < MAX_CHILD_DEPTH and self._at_boundary(text, k):
                match = _NAME_PATTERN.match(text, k + 1)
                if match and match.end() < n and text[match.end()] == "(":
                    child_end = self._matching_paren(text, match.end())
                    child = self._tokenize(text[k:child_end], depth + 1)
                    if child:
                        pieces.append(text[segment_start:k])
                        pieces.append(RawFragment.placeholder(len(children)))
                        children.append(child[0])
                        segment_start = child_end
                        k = child_end
                        continue
            k += 1

        pieces.append(text[segment_start:k])
        return k, "".join(pieces), children

    def _matching_paren(self, text: str, start: int) -> int:
        """start의 "("와 짝이 맞는 ")" 다음 인덱스. 짝이 없으면 텍스트 길이."""
        level = 0
        quote = ""
        for k in range(start, len(text)):
            ch = text[k]
            if quote:
                if ch == quote:
                    quote = ""
            elif ch in _QUOTES:
                quote = ch
            elif ch == "(":
                level += 1
            elif ch == ")":
                level -= 1
                if level == 0:
                    return k + 1
        return len(text)

    def _next_sigil(self, text: str, start: int) -> int:
        """start 이후 단어 경계에 있는 첫 시길의 인덱스. 없으면 텍스트 길이."""
        k = text.find(SIGIL, start)
        while k != -1:
            if self._at_boundary(text, k):
                return k
            k = text.find(SIGIL, k + 1)
        return len(text)

    def _at_boundary(self, text: str, index: int) -> bool:
        return index == 0 or text[index - 1] in _BOUNDARY_CHARS


def tokenize(comment: str) -> list[RawFragment]:
    """DocblockTokenizer().tokenize()의 함수형 단축."""
    return DocblockTokenizer().tokenize(comment)
