"""
설정 관리 모듈.

pydantic-settings를 사용하여 .env 파일과 환경변수에서 설정을 로드한다.

사용 예:
    settings = ReaderSettings()
    print(settings.source_path)
"""

from pathlib import Path

from pydantic_settings import BaseSettings


class ReaderSettings(BaseSettings):
    """
    어노테이션 리더 설정.

    .env 파일 또는 환경변수에서 값을 읽어온다.
    필드명을 대문자로 변환하고 DOCBLOCK_ 접두사를 붙인 환경변수와 매칭된다.
    예: source_path → DOCBLOCK_SOURCE_PATH
    """

    # 인덱싱할 PHP 소스 루트 디렉토리
    source_path: Path = Path("src")
    file_glob: str = "**/*.php"

    # 값을 정규화된 클래스 이름으로 해석할 속성 이름 (예: ["childClassName"])
    # 환경변수로는 JSON 배열로 지정: DOCBLOCK_TYPE_NAME_ATTRIBUTES='["childClassName"]'
    type_name_attributes: list[str] = []

    # 예외 정책: 모든 오류를 던질지, 자체 어휘 오류만 던질지
    throw_exceptions: bool = False
    throw_privileged_exceptions: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "DOCBLOCK_"}
