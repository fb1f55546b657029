"""
App layer: API 서버 (FastAPI).

역할:
- 인증(외부 IdP) + 권한 확인 후 파이프라인 서비스 호출
- OCR/LLM 벤더 Provider, 서비스 조립
- 저장/권한/로그 규칙은 core에 위임
"""
