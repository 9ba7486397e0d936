"""
예외 계층 모듈.

어노테이션 해석 중 의도적으로 발생시키는 모든 예외는 AnnotationReaderError를 상속한다.
호출자는 privileged 플래그로 "자체 어휘(first-party vocabulary)에서 발생한 치명적 오류"와
"외부 어노테이션의 일반 오류"를 구분할 수 있다.

계층:
    AnnotationReaderError
    ├── HostDeclarationNotFound   (클래스/프로퍼티/메서드를 찾을 수 없음)
    ├── MalformedValue            (값 언어를 구조화 리터럴로 정규화할 수 없음)
    ├── MissingRequiredAttribute  (필수 생성자 인자가 어노테이션에 없음)
    ├── UnbalancedImportGroup     (use 문 그룹의 중괄호 불일치)
    ├── HydrationError            (외부 예외를 감싼 인스턴스 생성/주입 실패)
    └── RegistrationError         (레지스트리 등록 시 스키마 오류)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class AnnotationReaderError(Exception):
    """
    이 패키지에서 발생시키는 모든 예외의 기반 클래스.

    Attributes:
        context: 오류 진단용 부가 정보 (어노테이션 타입, 호스트 클래스 등)
        privileged: 자체 어휘 어노테이션에서 발생한 오류이면 True
    """

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        privileged: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})
        self.privileged = privileged


class HostDeclarationNotFound(AnnotationReaderError):
    """어노테이션을 읽으려는 클래스, 프로퍼티 또는 메서드가 존재하지 않는다."""


class MalformedValue(AnnotationReaderError):
    """어노테이션 값 문자열을 정규화한 뒤에도 파싱할 수 없다."""


class MissingRequiredAttribute(AnnotationReaderError):
    """
    해석 가능한 어노테이션 타입이 있지만 필수 생성자 인자가 빠져 있다.

    메시지에는 누락된 파라미터, 어노테이션 타입, 호스트 선언이 모두 포함된다.
    """

    def __init__(self, parameter: str, annotation_type: str, host: str, **kwargs: Any):
        message = (
            f"어노테이션 {annotation_type}({host}에 선언됨)의 인스턴스를 만들 수 없습니다: "
            f"필수 생성자 인자 {parameter}이(가) 없거나 어노테이션 형식이 잘못되었습니다."
        )
        context = {"parameter": parameter, "annotation_type": annotation_type, "host": host}
        super().__init__(message, context=context, **kwargs)
        self.parameter = parameter
        self.annotation_type = annotation_type
        self.host = host


class UnbalancedImportGroup(AnnotationReaderError):
    """use 문 스캔 중 여는 그룹 없이 닫는 중괄호를 만났다 (스캐너 버그를 의미)."""


class HydrationError(AnnotationReaderError):
    """어노테이션 객체 생성 또는 속성 주입 중 외부 예외가 발생했다."""


class RegistrationError(AnnotationReaderError):
    """어노테이션 타입 등록 시 스키마가 유효하지 않다."""
