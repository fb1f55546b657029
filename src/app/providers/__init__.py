"""
AI / 외부 벤더 Provider Abstraction.

모델/벤더 교체 가능하게 설계. 모델명은 config만 SSOT.
"""

from .anthropic import ClaudeProvider
from .base import (
    CredentialProvider,
    LLMError,
    LLMProvider,
    LLMResponse,
    OCRError,
    OCRProvider,
    OCRResult,
    ProviderError,
)
from .credentials import ServiceAccountCredentialProvider
from .docai import DocumentAIOCRProvider
from .gemini import GeminiProvider
from .identity import HttpIdentityProvider, IdentityProvider, StaticIdentityProvider

__all__ = [
    "LLMProvider",
    "OCRProvider",
    "CredentialProvider",
    "IdentityProvider",
    "LLMResponse",
    "OCRResult",
    "ProviderError",
    "OCRError",
    "LLMError",
    "ClaudeProvider",
    "GeminiProvider",
    "DocumentAIOCRProvider",
    "ServiceAccountCredentialProvider",
    "HttpIdentityProvider",
    "StaticIdentityProvider",
]
