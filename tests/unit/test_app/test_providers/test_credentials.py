"""
test_credentials.py - Service account 토큰 교환/캐시 테스트

DoD:
- JWT assertion은 RS256, iss/scope/aud/exp 포함
- 만료 전까지 캐시 재사용, refresh_skew 이후 재발급
- 토큰 엔드포인트 non-2xx → OCRError (status_code, body)
"""

import json
from urllib.parse import parse_qs

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from src.app.providers.base import OCRError
from src.app.providers.credentials import (
    JWT_BEARER_GRANT,
    ServiceAccountCredentialProvider,
)

TOKEN_URI = "https://oauth2.example.test/token"

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="module")
def rsa_keys():
    """테스트용 RSA 키쌍 (PEM)."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture
def service_account(rsa_keys):
    return {
        "client_email": "ocr@project.iam.gserviceaccount.com",
        "private_key": rsa_keys[0],
        "private_key_id": "key-1",
    }


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def token_client(responses: list[httpx.Response], requests: list[httpx.Request]):
    """요청을 기록하고 준비된 응답을 순서대로 반환하는 httpx 클라이언트."""
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return queue.pop(0)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def token_response(token: str, expires_in: int = 3600) -> httpx.Response:
    return httpx.Response(200, json={"access_token": token, "expires_in": expires_in})


# =============================================================================
# 초기화 테스트
# =============================================================================


class TestInit:
    def test_missing_private_key(self):
        with pytest.raises(OCRError) as exc_info:
            ServiceAccountCredentialProvider({"client_email": "a@b"})

        assert exc_info.value.code == "SERVICE_ACCOUNT_INVALID"
        assert "private_key" in exc_info.value.message

    def test_from_env_missing(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_APPLICATION_CREDENTIALS_JSON", raising=False)

        with pytest.raises(OCRError) as exc_info:
            ServiceAccountCredentialProvider.from_env()

        assert exc_info.value.code == "GOOGLE_CREDENTIALS_MISSING"

    def test_from_env_invalid_json(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS_JSON", "{not json")

        with pytest.raises(OCRError) as exc_info:
            ServiceAccountCredentialProvider.from_env()

        assert exc_info.value.code == "SERVICE_ACCOUNT_INVALID"

    def test_from_env(self, monkeypatch, service_account):
        monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS_JSON", json.dumps(service_account))

        creds = ServiceAccountCredentialProvider.from_env(token_uri=TOKEN_URI)

        assert creds.client_email == service_account["client_email"]
        assert creds.token_uri == TOKEN_URI

    def test_token_uri_from_service_account(self, service_account):
        service_account["token_uri"] = "https://sa.example.test/token"

        creds = ServiceAccountCredentialProvider(service_account)

        assert creds.token_uri == "https://sa.example.test/token"


# =============================================================================
# Assertion 테스트
# =============================================================================


class TestBuildAssertion:
    def test_claims_signed_rs256(self, service_account, rsa_keys):
        creds = ServiceAccountCredentialProvider(
            service_account, scope="scope-a", token_uri=TOKEN_URI, clock=FakeClock(1000.0)
        )

        assertion = creds.build_assertion()

        claims = jwt.decode(assertion, rsa_keys[1], algorithms=["RS256"], audience=TOKEN_URI,
                            options={"verify_exp": False, "verify_iat": False})
        assert claims["iss"] == service_account["client_email"]
        assert claims["scope"] == "scope-a"
        assert claims["iat"] == 1000
        assert claims["exp"] == 1000 + 3600
        assert jwt.get_unverified_header(assertion)["kid"] == "key-1"


# =============================================================================
# get_token 테스트
# =============================================================================


class TestGetToken:
    @pytest.mark.asyncio
    async def test_exchanges_assertion(self, service_account):
        requests: list[httpx.Request] = []
        creds = ServiceAccountCredentialProvider(
            service_account,
            token_uri=TOKEN_URI,
            http_client=token_client([token_response("tok-1")], requests),
        )

        token = await creds.get_token()

        assert token == "tok-1"
        form = parse_qs(requests[0].content.decode())
        assert form["grant_type"] == [JWT_BEARER_GRANT]
        assert form["assertion"][0].count(".") == 2

    @pytest.mark.asyncio
    async def test_cached_until_refresh_window(self, service_account):
        """만료 - refresh_skew 전까지는 재사용."""
        requests: list[httpx.Request] = []
        clock = FakeClock()
        creds = ServiceAccountCredentialProvider(
            service_account,
            token_uri=TOKEN_URI,
            refresh_skew=300,
            clock=clock,
            http_client=token_client(
                [token_response("tok-1"), token_response("tok-2")], requests
            ),
        )

        assert await creds.get_token() == "tok-1"
        clock.now += 3000
        assert await creds.get_token() == "tok-1"
        assert len(requests) == 1

        clock.now += 400  # 만료 200초 전 → 갱신
        assert await creds.get_token() == "tok-2"
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_non_2xx(self, service_account):
        creds = ServiceAccountCredentialProvider(
            service_account,
            token_uri=TOKEN_URI,
            http_client=token_client(
                [httpx.Response(400, text='{"error": "invalid_grant"}')], []
            ),
        )

        with pytest.raises(OCRError) as exc_info:
            await creds.get_token()

        assert exc_info.value.code == "TOKEN_EXCHANGE_FAILED"
        assert exc_info.value.context["status_code"] == 400
        assert "invalid_grant" in exc_info.value.context["body"]

    @pytest.mark.asyncio
    async def test_missing_access_token(self, service_account):
        creds = ServiceAccountCredentialProvider(
            service_account,
            token_uri=TOKEN_URI,
            http_client=token_client([httpx.Response(200, json={})], []),
        )

        with pytest.raises(OCRError):
            await creds.get_token()

    @pytest.mark.asyncio
    async def test_transport_error(self, service_account):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        creds = ServiceAccountCredentialProvider(
            service_account,
            token_uri=TOKEN_URI,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        with pytest.raises(OCRError) as exc_info:
            await creds.get_token()

        assert exc_info.value.code == "TOKEN_EXCHANGE_FAILED"


class TestAclose:
    @pytest.mark.asyncio
    async def test_closes_token_client(self, service_account):
        client = token_client([], [])
        creds = ServiceAccountCredentialProvider(
            service_account, token_uri=TOKEN_URI, http_client=client
        )

        await creds.aclose()
        await creds.aclose()

        assert client.is_closed
