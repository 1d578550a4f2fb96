"""Shared fixtures for tests.

이 모듈은 테스트에서 공통으로 사용되는 픽스처를 제공합니다.

Rules Applied:
    - #17 Testing Standards: Pytest fixtures
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from yieldbot.config.settings import EngineSettings, clear_settings_cache

# ---------------------------------------------------------------------------
# 디렉토리 경로 → pytest 마커 자동 매핑
# ---------------------------------------------------------------------------
_DIR_MARKER_MAP: dict[str, str] = {
    "/strategy/": "strategy",
    "/automation/": "automation",
    "/api/": "integration",
    "/sim/": "integration",
    "/cli/": "integration",
    "/core/": "unit",
    "/config/": "unit",
    "/market/": "unit",
    "/logging/": "unit",
}

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """디렉토리 경로 기반 자동 마커 부여."""
    for item in items:
        fspath = str(item.fspath)
        for dir_pattern, marker_name in _DIR_MARKER_MAP.items():
            if dir_pattern in fspath:
                item.add_marker(getattr(pytest.mark, marker_name))
                break


@pytest.fixture(autouse=True)
def _isolate_settings_cache() -> None:
    """get_settings() lru_cache 격리."""
    clear_settings_cache()


@pytest.fixture
def settings() -> EngineSettings:
    """기본값 EngineSettings (.env 무시)."""
    return EngineSettings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
def now() -> datetime:
    """고정 기준 시각."""
    return T0

