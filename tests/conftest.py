"""어노테이션 리더 테스트 공용 픽스처."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pytest
from pydantic import BaseModel

from docblock_reader.mapping import register_mapping_vocabulary
from docblock_reader.models import AliasTable
from docblock_reader.reader import AnnotationReader
from docblock_reader.resolution.alias_finder import ClassAliasFinder, ScopedAliasFinder
from docblock_reader.resolution.registry import AnnotationRegistry
from docblock_reader.source_index import PhpSourceIndex

ANNOTATIONS_NAMESPACE = "App\\Annotations"


class Outer(BaseModel):
    inner: Any = None
    label: str = ""
    items: list[Any] = []


class Inner(BaseModel):
    x: int = 0


@dataclass
class Param:
    name: str
    type: str = ""


class Strict(BaseModel):
    code: str
    label: str = ""


class Fragile:
    """세터가 예외를 던지는 타입 (HydrationError 확인용)."""

    def __init__(self):
        self.level = 0

    def set_level(self, value):
        if not isinstance(value, int):
            raise ValueError(f"level must be an integer, got {value!r}")
        self.level = value


TEST_TYPES = {"Outer": Outer, "Inner": Inner, "Param": Param, "Strict": Strict, "Fragile": Fragile}


def annotation_type_name(name: str) -> str:
    return f"{ANNOTATIONS_NAMESPACE}\\{name}"


ENTITY_SOURCE = r"""<?php
declare(strict_types=1);

namespace App\Entity;

use App\Annotations\Outer;
use App\Annotations\Inner;
use App\Annotations\{Param, Strict};
use DocblockReader\Mapping as Map;
use DocblockReader\Mapping\Relationship as Rel;

/**
 * 사용자 엔티티
 * @package App\Entity
 * @Map\Table(name="users", repositoryClassName="UserRepository")
 * @Outer(inner=@Inner(x=1), label="outer")
 */
class User extends BaseEntity
{
    /**
     * @var int $id The primary key
     * @Map\Column(name="id", type="int", isPrimaryKey=true)
     */
    private $id;

    /**
     * @Rel(relationshipType="one_to_many", childClassName="Address",
     *     lazyLoad=true
     * )
     * @Map\OrderBy({"street", "city"})
     */
    private $addresses;

    /**
     * @Strict(label="no code")
     */
    private $loose;

    /**
     * @Map\Relationship(childClassName="Address")
     */
    private $broken;

    /**
     * @Column(name="nickname")
     */
    private $nickname;

    /**
     * @Param(name="a")
     * @Param(name="b")
     * @Param(name="c")
     * @return void
     */
    public function update($a, $b, $c)
    {
    }
}

/**
 * @Map\Table(name="base")
 */
abstract class BaseEntity
{
    /**
     * @var \DateTimeImmutable
     */
    protected $createdAt;

    /**
     * @param string $reason Why it was touched
     */
    public function touch($reason)
    {
    }
}

class Address
{
    private $street, $city;
}
"""


NATIVE_SOURCE = r"""<?php
namespace App\Native;

use DocblockReader\Mapping as Map;

#[Map\Table(name: 'native', repositoryClassName: 'NativeRepository')]
class NativeEntity
{
    /**
     * This docblock is ignored because native attributes are present
     * @Map\Column(name="ignored")
     */
    #[Map\Column(name: 'n', nullable: true, length: 32)]
    #[Map\OrderBy(['one' => 'asc', 'two' => 'desc'])]
    protected $name;

    #[param('string', '$someArg')]
    #[param(Address::class, '$address', 'With a comment')]
    public function rename(string $someArg, $address)
    {
    }
}
"""


@pytest.fixture
def registry() -> AnnotationRegistry:
    """자체 어휘 + 테스트 타입이 등록된 레지스트리."""
    registry = register_mapping_vocabulary(AnnotationRegistry())
    for name, annotation_type in TEST_TYPES.items():
        registry.register(annotation_type_name(name), annotation_type)
    return registry


@pytest.fixture
def finder(registry: AnnotationRegistry) -> ScopedAliasFinder:
    """테스트 타입 짧은 이름과 App\\Entity 네임스페이스를 아는 이름 해석기."""
    table = AliasTable(
        namespace="App\\Entity",
        imports={annotation_type_name(name): name for name in TEST_TYPES}
        | {"DocblockReader\\Mapping": "Map", "App\\Entity\\Address": "Address"},
    )
    return ScopedAliasFinder(table, ClassAliasFinder(registry.__contains__))


@pytest.fixture
def source_index() -> PhpSourceIndex:
    index = PhpSourceIndex()
    index.add_source(ENTITY_SOURCE, "src/Entity/User.php")
    index.add_source(NATIVE_SOURCE, "src/Native/NativeEntity.php")
    return index


@pytest.fixture
def reader(source_index: PhpSourceIndex, registry: AnnotationRegistry) -> AnnotationReader:
    return AnnotationReader(source_index, registry)
