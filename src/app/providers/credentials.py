"""
Google service-account 자격 증명 (OAuth2 JWT-bearer grant).

흐름:
1. service account JSON의 private_key로 RS256 JWT assertion 서명 (1시간 만료)
2. token_uri에 grant_type=jwt-bearer로 교환 → access_token
3. expires_at - refresh_skew 전까지 캐시 재사용
"""

import asyncio
import json
import logging
import os
import time
from collections.abc import Callable
from typing import Any

import httpx
from jose import jwt

from .base import CredentialProvider, OCRError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600


class ServiceAccountCredentialProvider(CredentialProvider):
    """
    Service account JWT → access token 교환 + 만료 인지 캐시.

    Usage:
        creds = ServiceAccountCredentialProvider.from_env()
        token = await creds.get_token()
    """

    def __init__(
        self,
        service_account: dict[str, Any],
        scope: str = DEFAULT_SCOPE,
        token_uri: str | None = None,
        refresh_skew: float = 300.0,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            service_account: client_email, private_key (PEM), private_key_id 포함
            scope: OAuth scope
            token_uri: 토큰 엔드포인트 (없으면 service account의 token_uri 또는 Google 기본값)
            refresh_skew: 만료 몇 초 전에 갱신할지
            http_client: 주입용 (테스트)
            clock: 현재 시각 (epoch seconds) 함수

        Raises:
            OCRError: 필수 키 누락 (fail-fast)
        """
        missing = [k for k in ("client_email", "private_key") if not service_account.get(k)]
        if missing:
            raise OCRError(
                "SERVICE_ACCOUNT_INVALID",
                f"Service account JSON is missing: {', '.join(missing)}",
            )

        self.client_email: str = service_account["client_email"]
        self.private_key: str = service_account["private_key"]
        self.private_key_id: str | None = service_account.get("private_key_id")
        self.scope = scope
        self.token_uri = token_uri or service_account.get("token_uri") or DEFAULT_TOKEN_URI
        self.refresh_skew = refresh_skew
        self.clock = clock

        self._client = http_client
        self._token: str | None = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()

    @classmethod
    def from_env(
        cls,
        env_var: str = "GOOGLE_APPLICATION_CREDENTIALS_JSON",
        **kwargs: Any,
    ) -> "ServiceAccountCredentialProvider":
        """
        환경변수의 service account JSON으로 생성.

        Raises:
            OCRError: 환경변수 없음 / JSON 파싱 실패
        """
        raw = os.environ.get(env_var)
        if not raw:
            raise OCRError(
                "GOOGLE_CREDENTIALS_MISSING",
                f"{env_var} 환경변수를 설정하세요.",
            )
        try:
            service_account = json.loads(raw)
        except json.JSONDecodeError as e:
            raise OCRError(
                "SERVICE_ACCOUNT_INVALID",
                f"{env_var} is not valid JSON: {e}",
            ) from e
        return cls(service_account, **kwargs)

    def _get_client(self) -> httpx.AsyncClient:
        """httpx 클라이언트 (lazy init)."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def build_assertion(self, issued_at: int | None = None) -> str:
        """서명된 JWT assertion 생성 (RS256, 1시간 만료)."""
        iat = int(self.clock()) if issued_at is None else issued_at
        claims = {
            "iss": self.client_email,
            "scope": self.scope,
            "aud": self.token_uri,
            "iat": iat,
            "exp": iat + ASSERTION_LIFETIME_SECONDS,
        }
        headers = {"kid": self.private_key_id} if self.private_key_id else None
        return jwt.encode(claims, self.private_key, algorithm="RS256", headers=headers)

    @property
    def is_valid(self) -> bool:
        """캐시된 토큰이 아직 갱신 시점 전인지."""
        return self._token is not None and self.clock() < self._expires_at - self.refresh_skew

    async def get_token(self) -> str:
        """
        access token 반환.

        캐시가 유효하면 그대로, 아니면 교환. 동시 갱신은 lock으로 직렬화.
        """
        if self.is_valid:
            return self._token  # type: ignore[return-value]

        async with self._lock:
            if self.is_valid:
                return self._token  # type: ignore[return-value]
            await self._refresh()
            return self._token  # type: ignore[return-value]

    async def _refresh(self) -> None:
        assertion = self.build_assertion()
        client = self._get_client()

        try:
            response = await client.post(
                self.token_uri,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Token exchange request failed: {e}")
            raise OCRError(
                "TOKEN_EXCHANGE_FAILED",
                f"Token exchange request failed: {e}",
            ) from e
        if response.status_code // 100 != 2:
            logger.error(
                f"Token exchange failed: status={response.status_code} body={response.text[:500]}"
            )
            raise OCRError(
                "TOKEN_EXCHANGE_FAILED",
                f"Token exchange failed with status {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        payload = response.json()
        token = payload.get("access_token")
        if not token:
            raise OCRError(
                "TOKEN_EXCHANGE_FAILED",
                "Token endpoint returned no access_token",
                status_code=response.status_code,
            )

        expires_in = float(payload.get("expires_in", ASSERTION_LIFETIME_SECONDS))
        self._token = token
        self._expires_at = self.clock() + expires_in
        logger.info(f"Obtained access token for {self.client_email} (expires_in={expires_in:.0f}s)")
