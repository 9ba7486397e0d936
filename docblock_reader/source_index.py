"""
PHP 소스 인덱스 모듈.

PHP 파일들을 파싱하여 정규화된 클래스 이름 → SourceClass 인덱스를 만든다.
AnnotationReader가 사용하는 호스트 인트로스펙션 계층으로, 다음을 제공한다:
- 선언의 docblock과 네이티브 어트리뷰트 (SourceClass / SourceMember)
- 별칭 해석에 필요한 원본 소스 텍스트 (get_source)
- 멤버 열거 (SourceClass.properties / methods)

사용 예:
    index = PhpSourceIndex()
    index.add_directory(Path("src/Entity"))
    entity = index.get_class("App\\Entity\\User")
"""

from __future__ import annotations

import logging
from pathlib import Path

from docblock_reader.models import SourceClass
from docblock_reader.parsing.extractors import DeclarationExtractor
from docblock_reader.parsing.php_parser import PhpParser

logger = logging.getLogger(__name__)


class PhpSourceIndex:
    """정규화된 클래스 이름으로 SourceClass와 원본 소스를 조회하는 인덱스."""

    def __init__(self):
        self.parser = PhpParser()
        self.extractor = DeclarationExtractor()
        self._classes: dict[str, SourceClass] = {}
        self._sources: dict[str, str] = {}

    def add_file(self, file_path: Path) -> list[SourceClass]:
        """PHP 파일 하나를 파싱하여 인덱스에 추가한다."""
        tree, source = self.parser.parse_file(file_path)
        classes = self.extractor.extract(tree, source, file_path)
        text = source.decode("utf-8", errors="replace")
        for cls in classes:
            self.add_class(cls, text)
        logger.debug("%s → %d개 클래스", file_path, len(classes))
        return classes

    def add_directory(self, directory: Path, pattern: str = "**/*.php") -> int:
        """
        디렉토리의 PHP 파일을 모두 인덱스에 추가한다.

        Returns:
            추가된 클래스 수
        """
        count = 0
        for file_path in sorted(Path(directory).glob(pattern)):
            if file_path.is_file():
                count += len(self.add_file(file_path))
        logger.info("%s: %d개 클래스 인덱싱 완료", directory, count)
        return count

    def add_source(self, source: str, file_path: str | None = None) -> list[SourceClass]:
        """메모리상의 PHP 소스를 파싱하여 인덱스에 추가한다 (테스트용)."""
        data = source.encode("utf-8")
        tree = self.parser.parse_source(data)
        classes = self.extractor.extract(tree, data, Path(file_path) if file_path else None)
        for cls in classes:
            self.add_class(cls, source)
        return classes

    def add_class(self, cls: SourceClass, source_text: str = "") -> None:
        """이미 만들어진 SourceClass를 등록한다. 같은 이름이 있으면 덮어쓴다."""
        self._classes[cls.qualified_name] = cls
        self._sources[cls.qualified_name] = source_text

    def get_class(self, qualified_name: str) -> SourceClass | None:
        return self._classes.get(qualified_name.lstrip("\\"))

    def get_source(self, qualified_name: str) -> str:
        """클래스가 선언된 파일의 전문 (별칭 해석용). 없으면 빈 문자열."""
        return self._sources.get(qualified_name.lstrip("\\"), "")

    def classes(self) -> list[SourceClass]:
        return list(self._classes.values())

    def __contains__(self, qualified_name: object) -> bool:
        return isinstance(qualified_name, str) and qualified_name.lstrip("\\") in self._classes
