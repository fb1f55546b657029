"""
Identity Provider: Authorization 헤더 → 호출자 신원.

인증 자체는 외부 IdP에 위임. 여기서는 userinfo 조회만 수행.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any

import httpx

from src.domain.errors import AuthError, ErrorCodes, UpstreamError
from src.domain.schemas import CallerIdentity

from .base import IdentityError

logger = logging.getLogger(__name__)


def _bearer_token(authorization: str | None) -> str:
    """'Bearer <token>' 헤더에서 토큰 추출. 형식이 틀리면 AuthError."""
    if not authorization:
        raise AuthError(ErrorCodes.UNAUTHORIZED, "Unauthorized")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError(ErrorCodes.UNAUTHORIZED, "Unauthorized")
    return token.strip()


class IdentityProvider(ABC):
    """신원 확인 추상 인터페이스."""

    @abstractmethod
    async def get_user(self, authorization: str | None) -> CallerIdentity:
        """
        Raises:
            AuthError: 헤더 없음/토큰 무효
            UpstreamError: IdP 장애
        """
        ...

    async def aclose(self) -> None:
        """보유한 네트워크 클라이언트 정리 (앱 종료 시)."""


class HttpIdentityProvider(IdentityProvider):
    """
    외부 IdP userinfo 엔드포인트 호출.

    - 200 → {"id"|"sub", "email"} 사용
    - 401/403 → AuthError
    - 그 외 non-2xx → UpstreamError
    """

    def __init__(
        self,
        userinfo_url: str | None = None,
        api_key: str | None = None,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Args:
            userinfo_url: userinfo URL (환경변수 AUTH_USERINFO_URL)
            api_key: IdP가 요구하는 프로젝트 키 (환경변수 AUTH_API_KEY, 선택)
            timeout: 요청 타임아웃(초)
            http_client: 주입용 (테스트)

        Raises:
            IdentityError: URL 설정 누락 (fail-fast)
        """
        self.userinfo_url = userinfo_url or os.environ.get("AUTH_USERINFO_URL")
        if not self.userinfo_url:
            raise IdentityError(
                "AUTH_USERINFO_URL_MISSING",
                "AUTH_USERINFO_URL 환경변수 또는 auth.userinfo_url 설정이 필요합니다.",
            )
        self.api_key = api_key or os.environ.get("AUTH_API_KEY")
        self.timeout = timeout
        self._client = http_client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get_user(self, authorization: str | None) -> CallerIdentity:
        token = _bearer_token(authorization)
        headers = {"Authorization": f"Bearer {token}"}
        if self.api_key:
            headers["apikey"] = self.api_key

        try:
            response = await self._get_client().get(self.userinfo_url, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Identity provider request failed: {e}")
            raise UpstreamError(
                ErrorCodes.IDENTITY_FAILED,
                f"Identity provider unavailable: {e}",
            ) from e

        if response.status_code in (401, 403):
            raise AuthError(ErrorCodes.UNAUTHORIZED, "Unauthorized")
        if response.status_code // 100 != 2:
            logger.error(
                f"Identity provider error {response.status_code}: {response.text[:300]}"
            )
            raise UpstreamError(
                ErrorCodes.IDENTITY_FAILED,
                f"Identity provider error {response.status_code}",
                status_code=response.status_code,
            )

        payload: dict[str, Any] = response.json()
        user_id = payload.get("id") or payload.get("sub")
        if not user_id:
            raise AuthError(ErrorCodes.UNAUTHORIZED, "Unauthorized")
        return CallerIdentity(user_id=str(user_id), email=payload.get("email"))


class StaticIdentityProvider(IdentityProvider):
    """
    설정된 토큰 → 사용자 매핑 (로컬 개발/테스트용).

    config:
        auth:
          mode: static
          static_tokens:
            dev-token: user-1
    """

    def __init__(self, tokens: dict[str, str]):
        self.tokens = dict(tokens)

    async def get_user(self, authorization: str | None) -> CallerIdentity:
        token = _bearer_token(authorization)
        user_id = self.tokens.get(token)
        if user_id is None:
            raise AuthError(ErrorCodes.UNAUTHORIZED, "Unauthorized")
        return CallerIdentity(user_id=user_id)
