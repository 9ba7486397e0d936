"""
어노테이션 타입 레지스트리 모듈.

런타임 리플렉션 대신, 해석 가능한 어노테이션 타입을 명시적으로 등록한다.
등록 시점에 한 번 스키마(필수 생성자 인자, 직접 대입 가능한 필드, 세터 메서드)를
계산하고 검증하므로, 어노테이션 출현마다 멤버 존재 여부를 검사하지 않는다.

스키마 추론 순서:
    pydantic BaseModel → model_fields
    dataclass          → dataclasses.fields()
    그 외 클래스/함수   → 생성자 시그니처 + 클래스 타입 힌트
    세터               → 공개 메서드 중 "set_<필드>" 형태

사용 예:
    registry = AnnotationRegistry()
    registry.register("App\\Mapping\\Table", Table)
    registry.register("App\\Mapping\\OrderBy", OrderBy, positional="order_by", privileged=True)
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import BaseModel

from docblock_reader.errors import RegistrationError

logger = logging.getLogger(__name__)

SETTER_PREFIX = "set_"

# 위치 값만 있을 때 관례적으로 사용하는 필드 이름
DEFAULT_POSITIONAL_FIELD = "value"


def normalize_name(name: str) -> str:
    """대소문자와 밑줄을 무시한 비교용 이름 (childClassName == child_class_name)."""
    return name.replace("_", "").lower()


class AnnotationSchema(BaseModel):
    """
    하나의 어노테이션 타입에 대한 하이드레이션 스키마.

    AnnotationRegistry.register()가 생성하며, 생성 후 변경되지 않는다.
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    name: str                                  # 정규화된 타입 이름 (앞의 역슬래시 없음)
    factory: Callable[..., Any]                # 인스턴스를 만드는 클래스 또는 함수
    required: list[str] = []                   # 필수 생성자 인자 (선언 순서)
    fields: list[str] = []                     # 직접 대입 가능한 공개 필드
    setters: dict[str, str] = {}               # 필드 이름 → 세터 메서드 이름
    positional_field: str | None = None        # 키 없는 위치 값을 받을 필드
    privileged: bool = False                   # 자체 어휘 여부 (실패 시 치명적)

    def match_required(self, parameter: str, attributes: Mapping[str, Any]) -> str | None:
        """필수 인자에 대응하는 속성 키를 찾는다 (정확히 → 대소문자 무시 → 밑줄 무시)."""
        return _match(parameter, attributes)

    def match_field(self, attribute: str) -> str | None:
        """속성 키에 대응하는 직접 대입 필드 이름."""
        return _match(attribute, self.fields)

    def match_setter(self, attribute: str) -> str | None:
        """속성 키에 대응하는 세터 메서드 이름."""
        field = _match(attribute, self.setters)
        return self.setters[field] if field else None


class AnnotationRegistry:
    """
    타입 이름 → AnnotationSchema 매핑.

    ClassAliasFinder의 class_exists로도 쓰이므로 조회는 앞의 역슬래시를 무시한다.
    """

    def __init__(self):
        self._schemas: dict[str, AnnotationSchema] = {}

    def register(
        self,
        name: str,
        factory: Callable[..., Any],
        *,
        required: Iterable[str] | None = None,
        fields: Iterable[str] | None = None,
        setters: Mapping[str, str] | Iterable[str] | None = None,
        positional: str | None = None,
        privileged: bool = False,
    ) -> AnnotationSchema:
        """
        어노테이션 타입을 등록한다.

        Args:
            name: 정규화된 타입 이름 (예: "App\\Mapping\\Column")
            factory: 인스턴스를 만드는 클래스 또는 호출 가능 객체
            required: 필수 생성자 인자. None이면 팩토리에서 추론
            fields: 직접 대입 가능한 필드. None이면 팩토리에서 추론
            setters: 필드 → 세터 메서드 이름 매핑 (또는 필드 이름 목록, "set_" 접두사 사용)
            positional: 위치 값을 받을 필드. None이면 필수 인자가 하나일 때 그 인자
            privileged: 자체 어휘이면 True (하이드레이션 실패가 항상 전파됨)

        Returns:
            등록된 스키마

        Raises:
            RegistrationError: 이름이 비었거나, 팩토리가 호출 불가능하거나,
                세터가 존재하지 않거나 비공개일 때
        """
        qualified = name.strip().lstrip("\\")
        if not qualified:
            raise RegistrationError("어노테이션 타입 이름이 비어 있습니다")
        if not callable(factory):
            raise RegistrationError(
                f"{qualified}: 팩토리가 호출 가능한 객체가 아닙니다 ({factory!r})",
                context={"annotation_type": qualified},
            )

        derived_required, derived_fields, parameters = _derive_fields(factory)
        required_list = list(required) if required is not None else derived_required
        field_list = list(fields) if fields is not None else derived_fields

        if parameters is not None:
            unknown = [p for p in required_list if p not in parameters]
            if unknown:
                raise RegistrationError(
                    f"{qualified}: 생성자에 없는 필수 인자가 지정되었습니다: {', '.join(unknown)}",
                    context={"annotation_type": qualified, "parameters": unknown},
                )

        if setters is None:
            setter_map = _derive_setters(factory)
        elif isinstance(setters, Mapping):
            setter_map = dict(setters)
        else:
            setter_map = {field: SETTER_PREFIX + field for field in setters}
        for field, method in setter_map.items():
            _check_setter(qualified, factory, field, method)

        if positional is None:
            if len(required_list) == 1:
                positional = required_list[0]
            elif DEFAULT_POSITIONAL_FIELD in field_list:
                positional = DEFAULT_POSITIONAL_FIELD
        elif positional not in required_list + field_list and positional not in setter_map:
            raise RegistrationError(
                f"{qualified}: 위치 값 필드 {positional}이(가) 스키마에 없습니다",
                context={"annotation_type": qualified, "positional": positional},
            )

        schema = AnnotationSchema(
            name=qualified,
            factory=factory,
            required=required_list,
            fields=field_list,
            setters=setter_map,
            positional_field=positional,
            privileged=privileged,
        )
        self._schemas[qualified] = schema
        logger.debug(
            "어노테이션 타입 등록: %s (필수 %d, 필드 %d, 세터 %d%s)",
            qualified, len(schema.required), len(schema.fields), len(schema.setters),
            ", privileged" if privileged else "",
        )
        return schema

    def get(self, name: str) -> AnnotationSchema | None:
        return self._schemas.get(name.lstrip("\\"))

    def names(self) -> list[str]:
        return list(self._schemas)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lstrip("\\") in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)


def _match(name: str, candidates: Iterable[str]) -> str | None:
    candidates = list(candidates)
    if name in candidates:
        return name
    lowered = name.lower()
    for candidate in candidates:
        if candidate.lower() == lowered:
            return candidate
    normalized = normalize_name(name)
    for candidate in candidates:
        if normalize_name(candidate) == normalized:
            return candidate
    return None


def _derive_fields(factory: Callable[..., Any]) -> tuple[list[str], list[str], set[str] | None]:
    """
    팩토리에서 (필수 인자, 대입 가능한 필드, 생성자 파라미터 집합)을 추론한다.

    생성자가 **kwargs를 받으면 파라미터 집합은 None (검증 생략)이다.
    """
    if isinstance(factory, type) and issubclass(factory, BaseModel):
        model_fields = factory.model_fields
        required = [name for name, info in model_fields.items() if info.is_required()]
        return required, list(model_fields), set(model_fields)

    if isinstance(factory, type) and dataclasses.is_dataclass(factory):
        init_fields = [f for f in dataclasses.fields(factory) if f.init]
        required = [
            f.name for f in init_fields
            if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING
        ]
        return required, [f.name for f in dataclasses.fields(factory)], {f.name for f in init_fields}

    try:
        signature = inspect.signature(factory)
    except (TypeError, ValueError):
        return [], [], None

    required: list[str] = []
    fields: list[str] = []
    parameters: set[str] | None = set()
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_KEYWORD:
            parameters = None
        elif parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            continue
        else:
            fields.append(parameter.name)
            if parameters is not None:
                parameters.add(parameter.name)
            if parameter.default is inspect.Parameter.empty:
                required.append(parameter.name)

    if isinstance(factory, type):
        hints = getattr(factory, "__annotations__", {})
        fields += [name for name in hints if not name.startswith("_") and name not in fields]
    return required, fields, parameters


def _derive_setters(factory: Callable[..., Any]) -> dict[str, str]:
    if not isinstance(factory, type):
        return {}
    setters: dict[str, str] = {}
    for attribute in dir(factory):
        if attribute.startswith(SETTER_PREFIX) and callable(getattr(factory, attribute, None)):
            setters[attribute[len(SETTER_PREFIX):]] = attribute
    return setters


def _check_setter(annotation_type: str, factory: Callable[..., Any], field: str, method: str) -> None:
    if method.startswith("_"):
        raise RegistrationError(
            f"{annotation_type}: 세터 {method}은(는) 공개 메서드가 아닙니다",
            context={"annotation_type": annotation_type, "field": field, "setter": method},
        )
    if not callable(getattr(factory, method, None)):
        raise RegistrationError(
            f"{annotation_type}: 세터 메서드 {method}이(가) 존재하지 않습니다",
            context={"annotation_type": annotation_type, "field": field, "setter": method},
        )
