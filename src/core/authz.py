"""
Authorization Gate: 호출자가 Matter에 접근 가능한지 판단.

저장소 정책(RLS 등)과 독립적으로, 모든 조회/변경 전에 호출.
거부와 부재는 호출자에게 구분되지 않음 (둘 다 404).
"""

from abc import ABC, abstractmethod

from src.core.records import RecordStore
from src.domain.errors import ErrorCodes, NotFoundError
from src.domain.schemas import Matter


class AuthorizationGate(ABC):
    """권한 판단 추상 인터페이스."""

    @abstractmethod
    def can_access_matter(self, user_id: str, matter_id: str) -> bool: ...


class OwnershipGate(AuthorizationGate):
    """Matter.owner_id == user_id 일 때만 허용."""

    def __init__(self, records: RecordStore):
        self.records = records

    def can_access_matter(self, user_id: str, matter_id: str) -> bool:
        matter = self.records.get_matter(matter_id)
        if matter is None or matter.owner_id is None:
            return False
        return matter.owner_id == user_id


def require_matter_access(
    gate: AuthorizationGate,
    records: RecordStore,
    user_id: str,
    matter_id: str,
) -> Matter:
    """
    권한 확인 후 Matter 반환.

    Raises:
        NotFoundError: MATTER_NOT_FOUND (없음 또는 권한 없음)
    """
    if not gate.can_access_matter(user_id, matter_id):
        raise NotFoundError(
            ErrorCodes.MATTER_NOT_FOUND,
            "Matter not found or access denied",
            matter_id=matter_id,
        )
    matter = records.get_matter(matter_id)
    if matter is None:
        raise NotFoundError(
            ErrorCodes.MATTER_NOT_FOUND,
            "Matter not found or access denied",
            matter_id=matter_id,
        )
    return matter
