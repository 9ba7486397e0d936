"""
자체 어노테이션 어휘 모듈.

이 패키지가 직접 정의하는 매핑 어노테이션 타입들이다.
AnnotationRegistry에 privileged=True로 등록되므로, 이 타입들의 하이드레이션 실패
(필수 속성 누락, 잘못된 값)는 제네릭으로 대체되지 않고 항상 호출자에게 전파된다.

PHP 소스에서의 사용 예:
    use DocblockReader\\Mapping as Map;

    /**
     * @Map\\Table(name="users")
     */
    class User
    {
        /**
         * @Map\\Relationship(relationshipType="one_to_many", childClassName="Address")
         * @Map\\OrderBy({"street", "city"})
         */
        private $addresses;
    }
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, PrivateAttr

from docblock_reader.resolution.registry import AnnotationRegistry

MAPPING_NAMESPACE = "DocblockReader\\Mapping"


class Table(BaseModel):
    """클래스와 데이터베이스 테이블의 매핑."""

    name: str = ""                             # 테이블 이름
    repository_class_name: str = ""            # 이 클래스 전용 리포지토리 (있을 때만)


class Column(BaseModel):
    """프로퍼티와 컬럼의 매핑."""

    name: str = ""
    type: str | None = None
    length: int | None = None
    nullable: bool = False
    is_primary_key: bool = False


class Relationship(BaseModel):
    """
    프로퍼티가 다른 엔티티와의 관계임을 나타낸다.

    relationship_type은 필수 생성자 인자다. child_class_name은 비공개 필드이므로
    set_child_class_name() 세터를 통해서만 주입된다.
    """

    ONE_TO_ONE: ClassVar[str] = "one_to_one"
    ONE_TO_MANY: ClassVar[str] = "one_to_many"
    MANY_TO_ONE: ClassVar[str] = "many_to_one"
    MANY_TO_MANY: ClassVar[str] = "many_to_many"

    relationship_type: str
    is_primary_key: bool = False
    mapped_by: str = ""
    lazy_load: bool | None = None              # None이면 관계 종류에 따른 기본값
    join_table: str = ""
    join_column: str = ""
    source_join_column: str = ""
    join_type: str = "LEFT"                    # "INNER" 또는 "LEFT"
    order_by: Any = []
    cascade_deletes: bool = False
    orphan_removal: bool = False

    _child_class_name: str = PrivateAttr(default="")

    def set_child_class_name(self, value: str) -> None:
        self._child_class_name = value

    def get_child_class_name(self) -> str:
        return self._child_class_name


class OrderBy(BaseModel):
    """자식 컬렉션의 정렬 기준. 위치 값 하나만 받는다: @OrderBy({"a", "b"})"""

    order_by: list[str] | dict[str, str]


VOCABULARY: tuple[type[BaseModel], ...] = (Table, Column, Relationship, OrderBy)


def qualified_name(annotation_type: type[BaseModel]) -> str:
    """자체 어휘 타입의 정규화된 PHP 이름 (예: "DocblockReader\\Mapping\\Table")."""
    return f"{MAPPING_NAMESPACE}\\{annotation_type.__name__}"


def register_mapping_vocabulary(registry: AnnotationRegistry) -> AnnotationRegistry:
    """자체 어휘 타입을 모두 특권 타입으로 등록한다."""
    for annotation_type in VOCABULARY:
        registry.register(qualified_name(annotation_type), annotation_type, privileged=True)
    return registry
