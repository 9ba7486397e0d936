"""어노테이션 읽기 실행 스크립트.

PHP 소스 디렉토리를 인덱싱하고, 모든 클래스/프로퍼티/메서드의 어노테이션을 해석하여
클래스별 표로 출력한다.

사용법:
    python scripts/run_read.py
    python scripts/run_read.py --source path/to/php/src
"""

import argparse
import sys
from pathlib import Path

# 프로젝트 루트를 sys.path에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from rich.console import Console
from rich.table import Table

from docblock_reader.config import ReaderSettings
from docblock_reader.errors import AnnotationReaderError
from docblock_reader.mapping import register_mapping_vocabulary
from docblock_reader.models import DeclarationKey, GenericAnnotation
from docblock_reader.reader import AnnotationReader
from docblock_reader.resolution.registry import AnnotationRegistry
from docblock_reader.source_index import PhpSourceIndex

console = Console()


def describe(value) -> str:
    """해석 결과 한 개를 한 줄 요약으로."""
    if isinstance(value, GenericAnnotation):
        parts = [f"type={value.type}" if value.type else "", value.variable or "", value.comment or ""]
        return "제네릭 " + " ".join(part for part in parts if part)
    return repr(value)


def main() -> None:
    parser = argparse.ArgumentParser(description="PHP docblock 어노테이션 읽기")
    parser.add_argument("--source", type=Path, help="인덱싱할 PHP 소스 디렉토리 (기본값: 설정)")
    args = parser.parse_args()

    settings = ReaderSettings()
    if args.source:
        settings.source_path = args.source

    console.rule("[bold blue]PHP 어노테이션 읽기")

    # 1. 소스 인덱싱
    console.print(f"\n[1/2] {settings.source_path} 를 인덱싱합니다...")
    index = PhpSourceIndex()
    count = index.add_directory(settings.source_path, settings.file_glob)
    console.print(f"  인덱싱된 클래스 수: [green]{count}[/green]")
    if count == 0:
        console.print("[red]PHP 클래스가 없습니다. --source 경로를 확인하세요.[/red]")
        return

    # 2. 어노테이션 해석
    console.print("\n[2/2] 어노테이션을 해석합니다...\n")
    registry = register_mapping_vocabulary(AnnotationRegistry())
    reader = AnnotationReader.from_settings(settings, index, registry)
    last_error = ""

    for cls in index.classes():
        table = Table(title=f"{cls.qualified_name} ({cls.entity_type})", title_justify="left")
        table.add_column("선언", style="cyan")
        table.add_column("어노테이션", style="magenta")
        table.add_column("해석 결과")

        keys = [DeclarationKey(class_name=cls.qualified_name)]
        keys += [DeclarationKey(class_name=cls.qualified_name, kind="property", member=n) for n in cls.properties]
        keys += [DeclarationKey(class_name=cls.qualified_name, kind="method", member=n) for n in cls.methods]

        for key in keys:
            try:
                resolved = reader.resolve_all_for_declaration(key)
            except AnnotationReaderError as e:
                # 자체 어휘 오류는 전파되므로 해당 선언만 건너뛴다
                table.add_row(key.item_name, "[red]오류[/red]", e.message)
                continue
            for name, value in resolved.items():
                values = value if isinstance(value, list) else [value]
                for item in values:
                    table.add_row(key.item_name, name, describe(item))

        console.print(table)
        if reader.last_error_message and reader.last_error_message != last_error:
            last_error = reader.last_error_message
            console.print(f"  [yellow]마지막 오류:[/yellow] {last_error}")

    console.rule("[bold green]완료")


if __name__ == "__main__":
    main()
