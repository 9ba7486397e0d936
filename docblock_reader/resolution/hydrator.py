"""
어노테이션 하이드레이터 모듈.

토크나이즈된 조각(RawFragment)을 등록된 어노테이션 타입의 인스턴스로 만든다.
등록된 타입이 없거나, 일반(비특권) 타입의 생성이 실패하면 GenericAnnotation으로 대체한다.

데이터 흐름:
    RawFragment
      →[별칭 해석] 정규화된 타입 이름
      →[레지스트리 조회] AnnotationSchema (없으면 GenericAnnotation)
      →[값 파싱] AttributeMap
      →[자식 치환, 타입 이름 속성 해석]
      →[생성자 호출 + 필드 대입/세터 호출] 어노테이션 인스턴스

실패 정책:
    - 일반 타입: 예외를 last_error에 기록하고 GenericAnnotation으로 대체
    - 특권 타입(자체 어휘): privileged=True로 표시된 예외를 그대로 전파
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from docblock_reader.errors import (
    AnnotationReaderError,
    HydrationError,
    MissingRequiredAttribute,
)
from docblock_reader.models import AttributeMap, DeclarationKey, GenericAnnotation, RawFragment
from docblock_reader.parsing.value_parser import parse_attributes, parse_positional
from docblock_reader.resolution.generic import QualifiedNameFinder
from docblock_reader.resolution.registry import AnnotationRegistry, AnnotationSchema, normalize_name

logger = logging.getLogger(__name__)


class AnnotationResolver:
    """
    RawFragment → 어노테이션 인스턴스 또는 GenericAnnotation 변환기.

    하이드레이션에 사용된 최종 속성 맵을 (클래스, 아이템, 타입) 단위로 보관하여
    "기본값과 같은 값이 명시됨"과 "속성이 없음"을 호출자가 구분할 수 있게 한다.
    """

    def __init__(
        self,
        registry: AnnotationRegistry,
        type_name_attributes: Iterable[str] | None = None,
    ):
        self.registry = registry
        self.type_name_attributes = type_name_attributes or ()
        self.last_error: AnnotationReaderError | None = None
        # {클래스: {아이템 이름: {어노테이션 타입: 속성 맵}}}
        self._attributes_read: dict[str, dict[str, dict[str, AttributeMap]]] = {}

    @property
    def type_name_attributes(self) -> frozenset[str]:
        """값을 정규화된 타입 이름으로 해석할 속성 이름들."""
        return self._type_name_attributes

    @type_name_attributes.setter
    def type_name_attributes(self, names: Iterable[str]) -> None:
        self._type_name_attributes = frozenset(names)
        self._normalized_type_names = {normalize_name(name) for name in self._type_name_attributes}

    @property
    def last_error_message(self) -> str:
        return self.last_error.message if self.last_error else ""

    def resolve(
        self,
        key: DeclarationKey,
        fragment: RawFragment,
        finder: QualifiedNameFinder | None = None,
    ) -> Any:
        """
        조각 하나를 해석한다.

        자식 조각을 먼저 해석한 뒤, 조각 이름이 등록된 타입으로 해석되면 하이드레이션하고
        그렇지 않으면 GenericAnnotation을 반환한다.

        Raises:
            AnnotationReaderError: 특권 타입의 하이드레이션이 실패했을 때 (privileged=True)
        """
        type_name = self.qualify(fragment.name, finder)
        if type_name is None:
            logger.debug("등록되지 않은 어노테이션 → 제네릭: @%s (%s)", fragment.name, key)
            return GenericAnnotation.parse(fragment.name, fragment.raw_value, finder, key)
        return self.convert_generic(key, fragment, type_name, finder)

    def convert_generic(
        self,
        key: DeclarationKey,
        fragment: RawFragment,
        type_name: str,
        finder: QualifiedNameFinder | None = None,
    ) -> Any:
        """
        조각을 지정된 타입으로 (다시) 해석한다.

        첫 해석에서 제네릭이 된 조각을, 호출자가 나중에 정규화된 이름으로 요청했을 때
        그 타입으로 업그레이드하는 데 사용된다. 같은 원시 값을 다시 파싱한다.
        """
        schema = self.registry.get(type_name)
        if schema is None:
            return GenericAnnotation.parse(fragment.name, fragment.raw_value, finder, key)

        children = self._resolve_children(key, fragment, finder)
        try:
            attributes = self._parse_value(schema, fragment.raw_value)
            return self.hydrate(schema.name, attributes, children, key=key, finder=finder)
        except AnnotationReaderError as exc:
            return self._fallback(exc, schema, key, fragment, finder)

    def hydrate(
        self,
        type_name: str,
        attributes: AttributeMap,
        children: Mapping[str, Any] | None = None,
        *,
        key: DeclarationKey | None = None,
        finder: QualifiedNameFinder | None = None,
        raw_value: str = "",
    ) -> Any:
        """
        속성 맵으로 어노테이션 인스턴스를 만든다.

        Args:
            type_name: 정규화된 타입 이름
            attributes: 값 파서가 만든 속성 맵 (플레이스홀더 포함 가능)
            children: 플레이스홀더 → 해석된 자식 어노테이션
            key: 호스트 선언 (오류 메시지와 속성 맵 보관용)
            finder: 타입 이름 속성을 해석할 이름 해석기
            raw_value: 타입이 등록되지 않았을 때 제네릭 분해에 사용할 원시 값

        Returns:
            어노테이션 인스턴스. 타입이 등록되지 않았으면 GenericAnnotation

        Raises:
            MissingRequiredAttribute: 필수 생성자 인자에 대응하는 속성이 없을 때
            HydrationError: 생성자 또는 필드 대입/세터 호출이 예외를 던졌을 때
        """
        schema = self.registry.get(type_name)
        if schema is None:
            return GenericAnnotation.parse(type_name, raw_value, finder, key)

        host = str(key) if key else "<unknown>"
        attributes = {name: _substitute(value, children or {}) for name, value in attributes.items()}
        attributes = self._resolve_type_names(attributes, finder)
        self._record_attributes(key, schema.name, attributes)

        arguments: dict[str, Any] = {}
        for parameter in schema.required:
            attribute = schema.match_required(parameter, attributes)
            if attribute is None:
                raise MissingRequiredAttribute(
                    parameter, schema.name, host, privileged=schema.privileged
                )
            arguments[parameter] = attributes[attribute]

        consumed = {schema.match_required(parameter, attributes) for parameter in schema.required}
        try:
            instance = schema.factory(**arguments)
            for name, value in attributes.items():
                if name in consumed:
                    continue
                field = schema.match_field(name)
                if field is not None:
                    setattr(instance, field, value)
                    continue
                setter = schema.match_setter(name)
                if setter is not None:
                    getattr(instance, setter)(value)
                # 대응하는 멤버가 없는 속성은 무시한다
        except Exception as exc:
            raise HydrationError(
                f"어노테이션 {schema.name}({host}에 선언됨)을 생성할 수 없습니다: {exc}",
                context={"annotation_type": schema.name, "host": host},
                privileged=schema.privileged,
            ) from exc

        return instance

    def qualify(self, name: str, finder: QualifiedNameFinder | None = None) -> str | None:
        """작성된 이름을 등록된 타입 이름으로 해석한다. 등록된 타입이 아니면 None."""
        qualified = finder.find_qualified_name(name, must_exist=True) if finder else None
        for candidate in (qualified, name):
            if candidate and candidate in self.registry:
                return candidate.lstrip("\\")
        return None

    def get_attributes_read(self, class_name: str, item_name: str, annotation_type: str) -> AttributeMap:
        """하이드레이션에 실제로 사용된 속성 맵 (없으면 빈 맵)."""
        items = self._attributes_read.get(class_name.lstrip("\\"), {})
        return dict(items.get(item_name, {}).get(annotation_type.lstrip("\\"), {}))

    def _resolve_children(
        self,
        key: DeclarationKey,
        fragment: RawFragment,
        finder: QualifiedNameFinder | None,
    ) -> dict[str, Any]:
        return {
            RawFragment.placeholder(index): self.resolve(key, child, finder)
            for index, child in enumerate(fragment.children)
        }

    def _parse_value(self, schema: AnnotationSchema, raw_value: str) -> AttributeMap:
        attributes = parse_attributes(raw_value)
        if attributes or not schema.positional_field:
            return attributes
        positional = parse_positional(raw_value)
        if positional is None:
            return {}
        return {schema.positional_field: positional}

    def _resolve_type_names(
        self,
        attributes: AttributeMap,
        finder: QualifiedNameFinder | None,
    ) -> AttributeMap:
        if finder is None or not self._normalized_type_names:
            return attributes

        def qualify(value: Any) -> Any:
            if isinstance(value, str):
                return finder.find_qualified_name(value, must_exist=False) or value
            if isinstance(value, list):
                return [qualify(item) for item in value]
            return value

        return {
            name: qualify(value) if normalize_name(name) in self._normalized_type_names else value
            for name, value in attributes.items()
        }

    def _record_attributes(
        self,
        key: DeclarationKey | None,
        annotation_type: str,
        attributes: AttributeMap,
    ) -> None:
        if key is None:
            return
        items = self._attributes_read.setdefault(key.class_name, {})
        items.setdefault(key.item_name, {})[annotation_type] = dict(attributes)

    def _fallback(
        self,
        exc: AnnotationReaderError,
        schema: AnnotationSchema,
        key: DeclarationKey,
        fragment: RawFragment,
        finder: QualifiedNameFinder | None,
    ) -> GenericAnnotation:
        if schema.privileged:
            exc.privileged = True
        self.last_error = exc
        if exc.privileged:
            logger.warning("자체 어휘 어노테이션 해석 실패: %s", exc.message)
            raise exc
        logger.debug("어노테이션 해석 실패 → 제네릭으로 대체: %s", exc.message)
        return GenericAnnotation.parse(fragment.name, fragment.raw_value, finder, key)


def _substitute(value: Any, children: Mapping[str, Any]) -> Any:
    """플레이스홀더 문자열을 해석된 자식으로 바꾼다 (리스트와 중첩 맵 안쪽 포함)."""
    if isinstance(value, str):
        return children.get(value, value)
    if isinstance(value, list):
        return [_substitute(item, children) for item in value]
    if isinstance(value, dict):
        return {name: _substitute(item, children) for name, item in value.items()}
    return value
