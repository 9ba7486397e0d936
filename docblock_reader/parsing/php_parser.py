"""
tree-sitter-php 래퍼 모듈.

tree-sitter-php는 두 가지 문법을 제공한다:
- language_php(): "<?php ... ?>" 태그 밖의 인라인 HTML까지 포함하는 파일 단위 문법
- language_php_only(): 태그 없이 순수 PHP 코드만 받는 문법

엔티티 파일은 "<?php"로 시작하고 템플릿이 섞여 있을 수도 있으므로 language_php()를 쓴다.
여기서 얻는 것은 선언의 위치와 그 직전 comment 노드, attribute_list 노드뿐이다.
docblock 안의 어노테이션 문법은 DocblockTokenizer가 해석한다.

사용 예:
    tree, source = PhpParser().parse_file(Path("src/Entity/User.php"))
"""

from pathlib import Path

import tree_sitter_php as tsphp
from tree_sitter import Language, Parser, Tree

PHP_LANGUAGE = Language(tsphp.language_php())


class PhpParser:
    """PHP 파일 또는 바이트 문자열을 AST로 파싱한다. 노드 오프셋은 UTF-8 바이트 기준이다."""

    def __init__(self):
        self.parser = Parser(PHP_LANGUAGE)

    def parse_file(self, file_path: Path) -> tuple[Tree, bytes]:
        """
        Returns:
            (tree, source). source는 노드 텍스트 추출에 쓰는 원본 바이트
        """
        source = file_path.read_bytes()
        return self.parser.parse(source), source

    def parse_source(self, source: bytes) -> Tree:
        """메모리상의 소스 파싱 (PhpSourceIndex.add_source에서 사용)."""
        return self.parser.parse(source)
