"""
어노테이션 리더 모듈.

PhpSourceIndex가 제공하는 선언에서 어노테이션을 읽는 진입점(facade)이다.

데이터 흐름:
    DeclarationKey
      →[PhpSourceIndex] SourceClass / SourceMember
      →[DocblockTokenizer 또는 네이티브 어트리뷰트] RawFragment 리스트   (캐시)
      →[ClassAliasFinder] AliasTable                                  (캐시)
      →[AnnotationResolver] 이름 → 인스턴스 / GenericAnnotation / 리스트 (캐시)

모든 캐시는 호스트 클래스 이름을 첫 번째 키로 사용한다.
동시에 처음 접근하면 각자 계산한 뒤 dict.setdefault로 저장한다 (먼저 저장된 값이 유지된다).

사용 예:
    index = PhpSourceIndex()
    index.add_directory(Path("src"))
    registry = register_mapping_vocabulary(AnnotationRegistry())
    reader = AnnotationReader(index, registry)

    table = reader.get_class_annotation("App\\Entity\\User", "DocblockReader\\Mapping\\Table")
    var = reader.get_property_annotation("App\\Entity\\User", "id", "var")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from docblock_reader.config import ReaderSettings
from docblock_reader.errors import AnnotationReaderError, HostDeclarationNotFound
from docblock_reader.models import (
    AliasTable,
    AttributeMap,
    DeclarationKey,
    DeclarationKind,
    GenericAnnotation,
    RawFragment,
    SourceClass,
    StructuredAttribute,
)
from docblock_reader.parsing.tokenizer import DocblockTokenizer
from docblock_reader.resolution.alias_finder import ClassAliasFinder, ScopedAliasFinder
from docblock_reader.resolution.hydrator import AnnotationResolver
from docblock_reader.resolution.registry import AnnotationRegistry
from docblock_reader.source_index import PhpSourceIndex

logger = logging.getLogger(__name__)

# 상속 체인을 따라 올라갈 최대 깊이 (순환 extends 방어)
MAX_PARENT_DEPTH = 64


class AnnotationReader:
    """
    클래스, 프로퍼티, 메서드의 어노테이션을 읽는 리더.

    예외 정책:
        throw_exceptions=True             모든 오류를 던진다
        throw_privileged_exceptions=True  자체 어휘 오류만 던진다 (기본값)
        둘 다 False                       last_error_message에 기록하고
                                          단일 조회는 None, 전체 조회는 빈 값을 반환

    HostDeclarationNotFound는 설정과 무관하게 기록 후 항상 던진다.
    조회를 시작할 때마다 last_error를 비우므로 마지막 호출의 오류만 남는다.
    """

    def __init__(
        self,
        host: PhpSourceIndex,
        registry: AnnotationRegistry | None = None,
        *,
        tokenizer: DocblockTokenizer | None = None,
        alias_finder: ClassAliasFinder | None = None,
        type_name_attributes: Iterable[str] | None = None,
        throw_exceptions: bool = False,
        throw_privileged_exceptions: bool = True,
    ):
        self.host = host
        self.registry = registry if registry is not None else AnnotationRegistry()
        self.tokenizer = tokenizer or DocblockTokenizer()
        self.alias_finder = alias_finder or ClassAliasFinder(self._class_exists)
        self.resolver = AnnotationResolver(self.registry, type_name_attributes)
        self.throw_exceptions = throw_exceptions
        self.throw_privileged_exceptions = throw_privileged_exceptions

        # {클래스: AliasTable}
        self._alias_tables: dict[str, AliasTable] = {}
        # {클래스: {아이템 이름: [RawFragment, ...]}}
        self._fragments: dict[str, dict[str, list[RawFragment]]] = {}
        # {클래스: {아이템 이름: {이름: 해석 결과 또는 리스트}}}
        self._resolved: dict[str, dict[str, dict[str, Any]]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: ReaderSettings,
        host: PhpSourceIndex | None = None,
        registry: AnnotationRegistry | None = None,
    ) -> AnnotationReader:
        """설정으로 리더를 만든다. host가 없으면 settings.source_path를 인덱싱한다."""
        if host is None:
            host = PhpSourceIndex()
            host.add_directory(settings.source_path, settings.file_glob)
        return cls(
            host,
            registry,
            type_name_attributes=settings.type_name_attributes,
            throw_exceptions=settings.throw_exceptions,
            throw_privileged_exceptions=settings.throw_privileged_exceptions,
        )

    # ── 설정 ──────────────────────────────────────────────

    def set_type_name_attributes(self, names: Iterable[str]) -> None:
        """
        값을 클래스 이름으로 해석할 속성 이름을 지정한다.

        해석 결과가 달라지므로 해석 결과 캐시만 비운다 (조각과 별칭 테이블 캐시는 유지).
        """
        self.resolver.type_name_attributes = names
        self._resolved.clear()

    def set_throw_exceptions(self, general: bool, privileged: bool = True) -> None:
        self.throw_exceptions = general
        self.throw_privileged_exceptions = privileged

    @property
    def last_error_message(self) -> str:
        return self.resolver.last_error_message

    # ── 선언 단위 조회 ──────────────────────────────────────

    def resolve_for_declaration(self, key: DeclarationKey, wanted: str) -> Any:
        """
        선언에서 이름이 wanted인 어노테이션을 반환한다.

        wanted는 등록된 타입 이름(정규화된 이름), 작성된 이름("var"), 또는 별칭일 수 있다.
        정규화된 이름으로 요청했는데 첫 해석에서는 짧은 이름의 제네릭이 되었다면
        같은 원시 값을 그 타입으로 다시 해석한다.

        Returns:
            해석 결과, 같은 이름이 반복되면 소스 순서의 리스트, 없으면 None
        """
        self.resolver.last_error = None
        try:
            cls = self._declaring_class(key)
            finder = self._finder(cls)
            index = self._resolved_index(cls, key, finder)

            name = wanted.strip().lstrip("\\")
            if name in index:
                return index[name]
            qualified = finder.find_qualified_name(name, must_exist=False)
            if qualified and qualified.lstrip("\\") in index:
                return index[qualified.lstrip("\\")]
            return self._upgrade(cls, key, finder, index, name)
        except AnnotationReaderError as exc:
            return self._handle_error(exc, None)

    def resolve_all_for_declaration(self, key: DeclarationKey) -> dict[str, Any]:
        """
        선언의 모든 어노테이션을 이름 → 해석 결과(또는 리스트) 맵으로 반환한다.

        등록된 타입은 정규화된 타입 이름, 제네릭은 작성된 이름이 키가 된다.
        """
        self.resolver.last_error = None
        try:
            cls = self._declaring_class(key)
            return dict(self._resolved_index(cls, key, self._finder(cls)))
        except AnnotationReaderError as exc:
            return self._handle_error(exc, {})

    def get_attributes_read(self, class_name: str, item_name: str, annotation_type: str) -> AttributeMap:
        """
        하이드레이션에 실제로 사용된 속성 맵.

        Args:
            class_name: 호스트 클래스의 정규화된 이름
            item_name: "c", "p:프로퍼티", "m:메서드" 형태의 아이템 이름
            annotation_type: 정규화된 어노테이션 타입 이름
        """
        return self.resolver.get_attributes_read(class_name, item_name, annotation_type)

    # ── 클래스/프로퍼티/메서드 편의 메서드 ─────────────────────

    def get_class_annotation(self, class_name: str, annotation_name: str) -> Any:
        return self.resolve_for_declaration(DeclarationKey(class_name=_strip(class_name)), annotation_name)

    def get_property_annotation(self, class_name: str, property_name: str, annotation_name: str) -> Any:
        key = self._member_key(class_name, "property", property_name.lstrip("$"))
        return self.resolve_for_declaration(key, annotation_name) if key else None

    def get_method_annotation(self, class_name: str, method_name: str, annotation_name: str) -> Any:
        key = self._member_key(class_name, "method", method_name)
        return self.resolve_for_declaration(key, annotation_name) if key else None

    def get_class_annotations(self, class_name: str) -> list[Any]:
        return _flatten(self.resolve_all_for_declaration(DeclarationKey(class_name=_strip(class_name))))

    def get_property_annotations(self, class_name: str, property_name: str) -> list[Any]:
        key = self._member_key(class_name, "property", property_name.lstrip("$"))
        return _flatten(self.resolve_all_for_declaration(key)) if key else []

    def get_method_annotations(self, class_name: str, method_name: str) -> list[Any]:
        key = self._member_key(class_name, "method", method_name)
        return _flatten(self.resolve_all_for_declaration(key)) if key else []

    def clear_cache(self) -> None:
        self._alias_tables.clear()
        self._fragments.clear()
        self._resolved.clear()

    # ── 내부 구현 ─────────────────────────────────────────

    def _class_exists(self, name: str) -> bool:
        return name in self.registry or name in self.host

    def _host_class(self, class_name: str) -> SourceClass:
        cls = self.host.get_class(class_name)
        if cls is None:
            raise HostDeclarationNotFound(
                f"클래스 {class_name}을(를) 찾을 수 없습니다",
                context={"class_name": class_name},
            )
        return cls

    def _declaring_class(self, key: DeclarationKey) -> SourceClass:
        cls = self._host_class(key.class_name)
        if key.kind != "class" and cls.member(key.kind, key.member) is None:
            raise HostDeclarationNotFound(
                f"{key}을(를) 찾을 수 없습니다",
                context={"class_name": key.class_name, "kind": key.kind, "member": key.member},
            )
        return cls

    def _member_key(self, class_name: str, kind: DeclarationKind, member: str) -> DeclarationKey | None:
        """
        멤버를 선언한 클래스를 찾아 키를 만든다.

        클래스 자신에 없으면 extends 체인을 따라 부모 클래스에서 찾는다.
        끝까지 없으면 HostDeclarationNotFound를 기록한 뒤 던진다.
        """
        self.resolver.last_error = None
        try:
            cls = self._host_class(_strip(class_name))
            for _ in range(MAX_PARENT_DEPTH):
                if cls.member(kind, member) is not None:
                    return DeclarationKey(class_name=cls.qualified_name, kind=kind, member=member)
                if not cls.parent:
                    break
                parent = self._finder(cls).find_qualified_name(cls.parent, must_exist=False)
                cls = self.host.get_class(parent or cls.parent)
                if cls is None:
                    break
            missing = DeclarationKey(class_name=_strip(class_name), kind=kind, member=member)
            raise HostDeclarationNotFound(
                f"{missing}을(를) 찾을 수 없습니다",
                context={"class_name": missing.class_name, "kind": kind, "member": member},
            )
        except AnnotationReaderError as exc:
            return self._handle_error(exc, None)

    def _finder(self, cls: SourceClass) -> ScopedAliasFinder:
        table = self._alias_tables.get(cls.qualified_name)
        if table is None:
            table = self.alias_finder.resolve_aliases(self.host.get_source(cls.qualified_name), cls.file_path)
            if cls.namespace is not None and table.namespace != cls.namespace:
                table = table.model_copy(update={"namespace": cls.namespace})
            table = self._alias_tables.setdefault(cls.qualified_name, table)
        return ScopedAliasFinder(table, self.alias_finder)

    def _fragments_for(self, cls: SourceClass, key: DeclarationKey, finder: ScopedAliasFinder) -> list[RawFragment]:
        items = self._fragments.setdefault(cls.qualified_name, {})
        fragments = items.get(key.item_name)
        if fragments is None:
            declaration = cls if key.kind == "class" else cls.member(key.kind, key.member)
            if declaration.attributes:
                fragments = [self._native_fragment(attribute, finder) for attribute in declaration.attributes]
            else:
                fragments = self.tokenizer.tokenize(declaration.docblock or "")
            fragments = items.setdefault(key.item_name, fragments)
            logger.debug("%s: 어노테이션 조각 %d개", key, len(fragments))
        return fragments

    def _native_fragment(self, attribute: StructuredAttribute, finder: ScopedAliasFinder) -> RawFragment:
        """
        네이티브 어트리뷰트를 조각으로 변환한다.

        등록된 타입이면 값 언어 인자를, 아니면 제네릭 분해를 위해 평문 인자를 값으로 쓴다.
        """
        if self.resolver.qualify(attribute.name, finder) is not None:
            return RawFragment(name=attribute.name, raw_value=attribute.arguments)
        return RawFragment(name=attribute.name, raw_value=attribute.text)

    def _resolved_index(self, cls: SourceClass, key: DeclarationKey, finder: ScopedAliasFinder) -> dict[str, Any]:
        items = self._resolved.setdefault(cls.qualified_name, {})
        index = items.get(key.item_name)
        if index is not None:
            return index

        index = {}
        repeated: set[str] = set()
        for fragment in self._fragments_for(cls, key, finder):
            value = self.resolver.resolve(key, fragment, finder)
            if isinstance(value, GenericAnnotation):
                name = fragment.name
            else:
                name = self.resolver.qualify(fragment.name, finder) or fragment.name
            _merge(index, repeated, name, value)
        return items.setdefault(key.item_name, index)

    def _upgrade(
        self,
        cls: SourceClass,
        key: DeclarationKey,
        finder: ScopedAliasFinder,
        index: dict[str, Any],
        wanted: str,
    ) -> Any:
        """
        짧은 이름으로 작성되어 제네릭이 된 조각을 정규화된 타입으로 다시 해석한다.

        결과는 요청된 이름으로 캐시된다. 작성된 이름의 제네릭은 그대로 남는다.
        다시 해석해도 하이드레이션이 실패하면 None을 반환하고 캐시하지 않는다.
        """
        if wanted not in self.registry:
            return None

        spellings = {wanted.rsplit("\\", 1)[-1], *finder.find_aliases(wanted)}
        fragments = [
            fragment for fragment in self._fragments_for(cls, key, finder)
            if fragment.name in spellings and fragment.name in index
        ]
        if not fragments:
            return None

        logger.debug("%s: @%s → %s 로 재해석", key, fragments[0].name, wanted)
        upgraded = [self.resolver.convert_generic(key, fragment, wanted, finder) for fragment in fragments]
        if any(isinstance(value, GenericAnnotation) for value in upgraded):
            # 하이드레이션이 실패하면 업그레이드하지 않는다 (last_error에 기록됨)
            return None
        return index.setdefault(wanted, upgraded[0] if len(upgraded) == 1 else upgraded)

    def _handle_error(self, exc: AnnotationReaderError, empty: Any) -> Any:
        self.resolver.last_error = exc
        if isinstance(exc, HostDeclarationNotFound):
            raise exc
        if self.throw_exceptions or (self.throw_privileged_exceptions and exc.privileged):
            raise exc
        logger.debug("어노테이션 조회 실패 (기록만 함): %s", exc.message)
        return empty


def _merge(index: dict[str, Any], repeated: set[str], name: str, value: Any) -> None:
    """같은 이름이 반복되면 소스 순서의 리스트로 모은다."""
    if name not in index:
        index[name] = value
    elif name in repeated:
        index[name].append(value)
    else:
        index[name] = [index[name], value]
        repeated.add(name)


def _flatten(index: dict[str, Any]) -> list[Any]:
    annotations: list[Any] = []
    for value in index.values():
        if isinstance(value, list):
            annotations.extend(value)
        else:
            annotations.append(value)
    return annotations


def _strip(class_name: str) -> str:
    return class_name.strip().lstrip("\\")
