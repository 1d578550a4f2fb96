"""LoggingConfig — yieldbot 로그 sink 설정.

``YIELDBOT_LOG_*`` 환경변수에서 로드되며, EngineSettings와 같은 prefix 체계를 따릅니다.
scheduler tick 로그는 전략/태스크 context(extra)를 콘솔에 함께 출력할 수 있습니다.

Rules Applied:
    - #11 Pydantic Modeling: Settings management, strict types
    - #15 Logging Standards: console + file sink
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, TypeAlias

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel: TypeAlias = Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


class LoggingConfig(BaseSettings):
    """yieldbot 로그 설정.

    Attributes:
        log_dir: 로그 파일 디렉토리
        file_name: 파일 이름 stem (날짜와 확장자가 붙음)
        console_level: 콘솔 최소 레벨
        file_level: 파일 최소 레벨
        enable_file: 파일 sink 사용 여부
        json_logs: 파일 sink JSON 직렬화 (False면 텍스트)
        show_context: 콘솔에 strategy_id/task_id 등 bound context 표시
        rotation: 파일 교체 주기 (크기 또는 시간)
        retention: 교체된 파일 보관 기간
    """

    model_config = SettingsConfigDict(
        env_prefix="YIELDBOT_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_dir: Path = Field(default=Path("logs"), description="로그 파일 디렉토리")
    file_name: str = Field(default="yieldbot", min_length=1, description="파일 이름 stem")

    console_level: LogLevel = Field(default="INFO", description="콘솔 최소 레벨")
    file_level: LogLevel = Field(default="DEBUG", description="파일 최소 레벨")

    enable_file: bool = Field(default=True, description="파일 sink 사용 여부")
    json_logs: bool = Field(default=True, description="파일 sink JSON 직렬화")
    show_context: bool = Field(default=False, description="콘솔에 bound context 표시")

    rotation: str = Field(default="1 day", description="파일 교체 주기 (예: '50 MB', '1 day')")
    retention: str = Field(default="14 days", description="교체된 파일 보관 기간")

    @property
    def file_suffix(self) -> str:
        """파일 sink 확장자."""
        return "json" if self.json_logs else "log"


def get_logging_config() -> LoggingConfig:
    """환경변수 기반 LoggingConfig."""
    return LoggingConfig()
