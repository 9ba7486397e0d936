"""
docblock 및 네이티브 어트리뷰트 추출 모듈.

tree-sitter AST 노드에서 다음 요소를 추출하는 헬퍼 함수들:
- docblock 주석 (/** ... */)
- PHP 8 어트리뷰트 (#[Table(name: 'test')])

이 모듈의 함수들은 extractors.py에서 선언 추출 시 호출된다.

tree-sitter AST 구조 (PHP):
    comment                       (/** ... */, 선언의 직전 형제 노드)
    class_declaration
    ├── attribute_list
    │   └── attribute_group       (#[A, B(...)])
    │       └── attribute
    │           ├── name / qualified_name
    │           └── arguments
    │               └── argument  (name: 필드가 있으면 이름 있는 인자)
    ├── name
    └── body (declaration_list)

어트리뷰트 인자는 어노테이션 값 언어로 변환된다:
    #[Table(name: 'test')]                → (name='test')
    #[OrderBy(['one' => 'two'])]          → ({'one'='two'})
    #[Relationship(childClassName: B::class)] → (childClassName="B")
"""

import json

from tree_sitter import Node

from docblock_reader.models import StructuredAttribute


def extract_docblock(node: Node, source: bytes) -> str | None:
    """
    선언 노드 바로 앞에 위치한 docblock 주석을 추출한다.

    tree-sitter-php에서 주석은 종류와 무관하게 comment 노드로 파싱되므로
    /** 로 시작하는지로 docblock 여부를 판별한다. 일반 주석(//, #, /* */)은 제외된다.

    Args:
        node: 클래스/프로퍼티/메서드 선언 노드
        source: 원본 소스 바이트

    Returns:
        docblock 문자열 (/** ... */) 또는 None
    """
    prev = node.prev_named_sibling
    if prev is None or prev.type != "comment":
        return None

    text = _text(prev, source)
    if text.startswith("/**"):
        return text
    return None


def extract_attributes(node: Node, source: bytes) -> list[StructuredAttribute]:
    """
    선언 노드의 attribute_list에서 네이티브 어트리뷰트를 소스 순서대로 추출한다.

    Args:
        node: 클래스/프로퍼티/메서드 선언 노드
        source: 원본 소스 바이트

    Returns:
        StructuredAttribute 리스트 (어트리뷰트가 없으면 빈 리스트)
    """
    attributes = []
    for child in node.children:
        if child.type != "attribute_list":
            continue
        for group in child.named_children:
            if group.type != "attribute_group":
                continue
            for attribute in group.named_children:
                if attribute.type == "attribute":
                    attributes.append(_convert_attribute(attribute, source))
    return attributes


def _convert_attribute(node: Node, source: bytes) -> StructuredAttribute:
    """attribute 노드 하나를 이름, 값 언어 인자, 평문 인자로 변환한다."""
    name = ""
    arguments: list[str] = []
    plain: list[str] = []

    for child in node.named_children:
        if child.type in ("name", "qualified_name") and not name:
            name = _text(child, source)
        elif child.type == "arguments":
            for argument in child.named_children:
                if argument.type != "argument":
                    continue
                value_node = argument.named_children[-1]
                value = _value(value_node, source)
                label = argument.child_by_field_name("name")
                if label is not None and label.id != value_node.id:
                    arguments.append(f"{_text(label, source)}={value}")
                else:
                    arguments.append(value)
                plain.append(_plain(value_node, source))

    return StructuredAttribute(
        name=name.lstrip("\\"),
        arguments=f"({', '.join(arguments)})" if arguments else "",
        text=" ".join(part for part in plain if part),
    )


def _value(node: Node, source: bytes) -> str:
    """PHP 표현식 노드를 어노테이션 값 언어 텍스트로 변환한다."""
    if node.type in ("string", "encapsed_string"):
        return _text(node, source)
    if node.type in ("integer", "float", "boolean", "null"):
        return _text(node, source)
    if node.type == "class_constant_access_expression" and _text(node, source).endswith("::class"):
        return json.dumps(_class_name(node, source))
    if node.type == "array_creation_expression":
        elements = []
        for element in node.named_children:
            if element.type != "array_element_initializer":
                continue
            parts = element.named_children
            if len(parts) == 2:
                elements.append(f"{_value(parts[0], source)}={_value(parts[1], source)}")
            elif parts:
                elements.append(_value(parts[0], source))
        return "{" + ", ".join(elements) + "}"
    # 상수, 연산식 등은 문자열로 취급한다
    return json.dumps(_text(node, source))


def _plain(node: Node, source: bytes) -> str:
    """제네릭 분해용 평문: 문자열은 따옴표 없이, X::class는 클래스 이름만."""
    text = _text(node, source)
    if node.type in ("string", "encapsed_string") and len(text) >= 2:
        return text[1:-1]
    if node.type == "class_constant_access_expression" and text.endswith("::class"):
        return _class_name(node, source)
    return text


def _class_name(node: Node, source: bytes) -> str:
    return _text(node, source)[: -len("::class")].strip()


def _text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")
