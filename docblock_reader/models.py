"""
데이터 모델 모듈.

주석 블록에서 추출된 어노테이션 조각과, tree-sitter AST에서 추출된 PHP 선언을
표현하는 모델을 정의한다.

데이터 흐름:
    PHP 소스 →[파싱]→ SourceClass / SourceMember
    docblock →[토크나이즈]→ RawFragment →[해석]→ 타입 인스턴스 또는 GenericAnnotation
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

from docblock_reader.resolution.generic import QualifiedNameFinder, decompose

# 어노테이션 속성 맵: 스칼라, 리스트, 또는 한 단계 중첩된 맵을 값으로 가진다
AttributeMap = dict[str, Any]

DeclarationKind = Literal["class", "property", "method"]

# 아이템 이름 접두사 (캐시 키 규칙: "c", "p:이름", "m:이름")
_ITEM_PREFIX = {"class": "c", "property": "p", "method": "m"}


class RawFragment(BaseModel):
    """
    주석 블록에서 발견된 하나의 어노테이션 출현.

    DocblockTokenizer가 생성하며, 생성 후 변경되지 않는다.
    괄호 안의 중첩 어노테이션은 children으로 분리되고,
    raw_value에서는 "_child_<n>" 플레이스홀더로 치환된다.
    """

    model_config = {"frozen": True}

    name: str                                  # 작성된 그대로의 이름 (별칭일 수 있음)
    raw_value: str = ""                        # 이름 뒤의 미파싱 값
    children: list[RawFragment] = []           # 플레이스홀더 순서대로의 자식 조각

    @staticmethod
    def placeholder(index: int) -> str:
        """index번째 자식을 가리키는 플레이스홀더 토큰을 만든다."""
        return f"_child_{index}"


class DeclarationKey(BaseModel):
    """
    어노테이션이 선언된 위치의 불변 식별자.

    GenericAnnotation이 소속 선언을 가리킬 때 역참조 대신 이 키를 들고 있는다.
    캐시 키 계산에만 사용되며 수명 관리와는 무관하다.
    """

    model_config = {"frozen": True}

    class_name: str                            # 호스트 클래스의 정규화된 이름
    kind: DeclarationKind = "class"
    member: str | None = None                  # 프로퍼티/메서드 이름 (클래스 자체면 None)

    @property
    def item_name(self) -> str:
        """
        "c", "p:이름", "m:이름" 형태의 아이템 이름.

        예: DeclarationKey(class_name="App\\User", kind="property", member="id").item_name
            → "p:id"
        """
        prefix = _ITEM_PREFIX[self.kind]
        return prefix if self.kind == "class" else f"{prefix}:{self.member}"

    def __str__(self) -> str:
        if self.kind == "class":
            return self.class_name
        separator = "::$" if self.kind == "property" else "::"
        return f"{self.class_name}{separator}{self.member}"


class GenericAnnotation(BaseModel):
    """
    등록된 타입이 없는 어노테이션의 구조적 분해 결과.

    @var, @param처럼 클래스 이름이 아닌 어노테이션을 표현한다.
    분해 규칙은 resolution.generic.decompose()를 참고.
    """

    model_config = {"frozen": True}

    name: str
    value: str = ""
    type: str | None = None                    # 해석된 타입 이름
    variable: str | None = None                # "$"로 시작하는 첫 토큰
    pre_variable_parts: list[str] = []         # 변수 앞 단어가 둘 이상일 때 각 단어
    comment: str | None = None                 # 나머지 자유 텍스트
    key: DeclarationKey | None = None          # 소속 선언 (캐시 키 용도)

    @property
    def parts(self) -> dict[str, str]:
        """{"part_1": ..., "part_2": ...} 형태의 pre_variable_parts."""
        return {f"part_{i}": part for i, part in enumerate(self.pre_variable_parts, 1)}

    def part(self, index: int) -> str | None:
        """1부터 시작하는 index로 변수 앞 단어를 반환한다."""
        if 1 <= index <= len(self.pre_variable_parts):
            return self.pre_variable_parts[index - 1]
        return None

    @classmethod
    def parse(
        cls,
        name: str,
        value: str = "",
        finder: QualifiedNameFinder | None = None,
        key: DeclarationKey | None = None,
    ) -> GenericAnnotation:
        """이름과 원시 값으로 GenericAnnotation을 분해/생성한다."""
        return cls(name=name, value=value, key=key, **decompose(value, finder))


class AliasTable(BaseModel):
    """
    하나의 호스트 클래스 범위에서 유효한 별칭 테이블.

    imports는 "정규화된 이름 → 코드에서 쓰는 이름" 매핑이다.
    별칭 import(use A\\B as C)도 정규화된 이름을 키로 저장하므로
    별칭("C")과 정규화된 이름("A\\B") 어느 쪽으로도 조회된다.
    """

    namespace: str = ""                        # 앰비언트 네임스페이스
    imports: dict[str, str] = {}

    def get(self, key: str, default: str | None = None) -> str | None:
        """빈 문자열 키는 앰비언트 네임스페이스를 의미한다."""
        if key == "":
            return self.namespace
        return self.imports.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key == "" or key in self.imports


class StructuredAttribute(BaseModel):
    """PHP 8 네이티브 어트리뷰트 #[Name(...)] 하나. arguments는 값 언어 형식으로 변환되어 있다."""

    model_config = {"frozen": True}

    name: str
    arguments: str = ""                        # 예: '(name="test", lazyLoad=true)'
    text: str = ""                             # 위치 인자를 공백으로 이어 붙인 텍스트 (제네릭 분해용)


class SourceMember(BaseModel):
    """
    tree-sitter AST에서 추출된 클래스 멤버 (프로퍼티 또는 메서드).

    DeclarationExtractor가 클래스 본문을 순회하며 생성한다.
    """

    kind: Literal["property", "method"]
    name: str                                  # 프로퍼티는 "$" 없이 저장 (예: "cb")
    start_line: int = 0                        # 1-based
    end_line: int = 0
    docblock: str | None = None                # /** ... */ 주석 전문
    attributes: list[StructuredAttribute] = []


class SourceClass(BaseModel):
    """
    tree-sitter AST에서 추출된 하나의 클래스형 선언 (class, interface, trait, enum).

    호스트 인트로스펙션 계층이 제공하는 단위로, 어노테이션 해석기는
    이 모델에서 docblock과 멤버 목록만 읽는다.
    """

    # 필수 필드
    entity_type: Literal["class", "interface", "trait", "enum"] = "class"
    name: str                                  # 단순 이름 (예: "TestEntity")
    qualified_name: str                        # 정규화된 이름 (예: "App\\Entity\\TestEntity")

    # 선택 필드
    namespace: str | None = None
    file_path: str | None = None
    start_line: int = 0
    end_line: int = 0
    parent: str | None = None                  # extends 절에 작성된 그대로의 부모 이름
    docblock: str | None = None
    attributes: list[StructuredAttribute] = []
    properties: dict[str, SourceMember] = {}
    methods: dict[str, SourceMember] = {}

    def member(self, kind: DeclarationKind, name: str | None) -> SourceMember | None:
        """kind에 해당하는 멤버를 찾는다. 클래스 자체는 멤버가 아니므로 None."""
        if kind == "property":
            return self.properties.get(name or "")
        if kind == "method":
            return self.methods.get(name or "")
        return None
