"""
E2E 테스트용 FastAPI TestClient 설정.

- app.state.services를 tmp_path 기반 서비스로 미리 채움 (벤더는 가짜)
- 토큰: tok-1 → user-1, tok-2 → user-2
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from src.app.dependencies import Services, build_services
from src.app.main import app
from src.app.providers.identity import StaticIdentityProvider


@pytest.fixture
def llm(fake_llm_factory):
    """테스트에서 llm.responses에 응답을 추가해 사용."""
    return fake_llm_factory()


@pytest.fixture
def ocr(fake_ocr_factory):
    return fake_ocr_factory(text="UNITED STATES PATENT AND TRADEMARK OFFICE\nOffice Action")


@pytest.fixture
def services(tmp_path, test_config, llm, ocr) -> Services:
    return build_services(
        test_config,
        root=tmp_path / "data",
        llm=llm,
        ocr_provider=ocr,
        identity=StaticIdentityProvider({"tok-1": "user-1", "tok-2": "user-2"}),
    )


@pytest.fixture
def client(test_config, services) -> Generator[TestClient, None, None]:
    """FastAPI TestClient."""
    app.state.config = test_config
    app.state.services = services
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.state.services = None
        app.state.config = None
