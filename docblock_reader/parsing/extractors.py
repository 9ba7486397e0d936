"""
PHP 선언 추출 모듈.

tree-sitter AST를 순회하여 PHP 소스 코드에서 SourceClass 객체를 추출한다.
어노테이션 해석기가 필요로 하는 것은 선언의 이름, docblock, 네이티브 어트리뷰트,
부모 클래스, 멤버 목록뿐이므로 본문 코드는 분석하지 않는다.

추출 대상:
- 클래스/인터페이스/트레이트/enum 선언
- 프로퍼티 선언 (한 선언에 여러 프로퍼티가 있으면 각각 등록)
- 메서드 선언

AST 순회 흐름:
    program
    ├── namespace_definition → 네임스페이스 추출 (본문 { } 형태면 재귀)
    └── class_declaration
        ├── SourceClass 생성
        └── declaration_list
            ├── property_declaration → property_element마다 SourceMember
            └── method_declaration → SourceMember
"""

from pathlib import Path

from tree_sitter import Node, Tree

from docblock_reader.models import SourceClass, SourceMember
from docblock_reader.parsing.comment_extractor import extract_attributes, extract_docblock

# 노드 타입 → entity_type
_CLASS_LIKE = {
    "class_declaration": "class",
    "interface_declaration": "interface",
    "trait_declaration": "trait",
    "enum_declaration": "enum",
}


class DeclarationExtractor:
    """
    tree-sitter AST에서 SourceClass 객체를 추출하는 추출기.

    하나의 PHP 파일을 입력받아 해당 파일에 정의된 모든 클래스형 선언을
    소스 순서대로 반환한다.
    """

    def extract(self, tree: Tree, source: bytes, file_path: Path | None = None) -> list[SourceClass]:
        """
        AST에서 모든 클래스형 선언을 추출한다.

        Args:
            tree: tree-sitter 파싱 결과 AST
            source: 원본 소스 바이트 (노드 텍스트 추출에 사용)
            file_path: PHP 파일 경로 (메타데이터용)

        Returns:
            추출된 SourceClass 리스트
        """
        classes: list[SourceClass] = []
        self._walk(tree.root_node, source, file_path, None, classes)
        return classes

    def _walk(
        self,
        node: Node,
        source: bytes,
        file_path: Path | None,
        namespace: str | None,
        classes: list[SourceClass],
    ):
        """
        최상위 문장을 순회한다.

        namespace A; 형태는 이후 형제 선언 전체에 적용되고,
        namespace A { ... } 형태는 본문 안에서만 적용된다.
        """
        for child in node.children:
            if child.type == "namespace_definition":
                name_node = child.child_by_field_name("name")
                child_namespace = _text(name_node, source) if name_node else None
                body = child.child_by_field_name("body")
                if body is not None:
                    self._walk(body, source, file_path, child_namespace, classes)
                else:
                    namespace = child_namespace
            elif child.type in _CLASS_LIKE:
                classes.append(self._extract_class_like(child, source, file_path, namespace))

    def _extract_class_like(
        self,
        node: Node,
        source: bytes,
        file_path: Path | None,
        namespace: str | None,
    ) -> SourceClass:
        """클래스형 선언 하나와 그 멤버를 추출한다."""
        name = _text(node.child_by_field_name("name"), source)
        qualified = f"{namespace}\\{name}" if namespace else name

        properties: dict[str, SourceMember] = {}
        methods: dict[str, SourceMember] = {}
        body = node.child_by_field_name("body")
        if body is not None:
            for member in body.named_children:
                if member.type == "property_declaration":
                    for prop in self._extract_properties(member, source):
                        properties[prop.name] = prop
                elif member.type == "method_declaration":
                    method = self._extract_method(member, source)
                    methods[method.name] = method

        return SourceClass(
            entity_type=_CLASS_LIKE[node.type],
            name=name,
            qualified_name=qualified,
            namespace=namespace,
            file_path=str(file_path) if file_path else None,
            start_line=node.start_point[0] + 1,   # tree-sitter는 0-based
            end_line=node.end_point[0] + 1,
            parent=self._extract_parent(node, source),
            docblock=extract_docblock(node, source),
            attributes=extract_attributes(node, source),
            properties=properties,
            methods=methods,
        )

    def _extract_properties(self, node: Node, source: bytes) -> list[SourceMember]:
        """
        property_declaration에서 프로퍼티를 추출한다.

        private $a, $b; 처럼 한 선언에 여러 프로퍼티가 있으면
        docblock과 어트리뷰트를 공유하는 SourceMember를 각각 만든다.
        """
        docblock = extract_docblock(node, source)
        attributes = extract_attributes(node, source)
        members = []
        for element in node.named_children:
            if element.type != "property_element":
                continue
            variable = next((c for c in element.named_children if c.type == "variable_name"), None)
            if variable is None:
                continue
            members.append(SourceMember(
                kind="property",
                name=_text(variable, source).lstrip("$"),
                start_line=node.start_point[0] + 1,
                end_line=node.end_point[0] + 1,
                docblock=docblock,
                attributes=attributes,
            ))
        return members

    def _extract_method(self, node: Node, source: bytes) -> SourceMember:
        return SourceMember(
            kind="method",
            name=_text(node.child_by_field_name("name"), source),
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            docblock=extract_docblock(node, source),
            attributes=extract_attributes(node, source),
        )

    def _extract_parent(self, node: Node, source: bytes) -> str | None:
        """
        base_clause(extends)에서 부모 클래스 이름을 작성된 그대로 반환한다.

        정규화는 별칭 테이블이 필요하므로 AnnotationReader가 수행한다.
        """
        for child in node.children:
            if child.type == "base_clause":
                for sub in child.named_children:
                    if sub.type in ("name", "qualified_name"):
                        return _text(sub, source)
        return None


def _text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")
