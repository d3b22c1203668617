"""
Repository for program enrollments.

Keys are "enrollment:{userId}:{programId}:{ms}-{rand}" and the id is the
key. Scanning "enrollment:{userId}:" yields one user's enrollments without
touching anyone else's.
"""

import logging
from typing import Any, Optional

from afsp.core.models import ContractStatus, Enrollment
from afsp.infrastructure.kv.client import new_record_suffix

from .base import Repository, format_timestamp, parse_enum, parse_timestamp, sort_key

logger = logging.getLogger(__name__)


ENROLLMENT_PREFIX = "enrollment:"


def new_enrollment_id(user_id: str, program_id: str) -> str:
    return f"{ENROLLMENT_PREFIX}{user_id}:{program_id}:{new_record_suffix()}"


def enrollment_to_document(enrollment: Enrollment) -> dict[str, Any]:
    document: dict[str, Any] = {
        "id": enrollment.id,
        "userId": enrollment.user_id,
        "programId": enrollment.program_id,
        "programName": enrollment.program_name,
        "customization": enrollment.customization,
        "enrolledAt": format_timestamp(enrollment.enrolled_at),
        "status": enrollment.status,
    }
    if enrollment.contract_id is not None:
        document["contractId"] = enrollment.contract_id
    if enrollment.contract_status is not None:
        document["contractStatus"] = enrollment.contract_status.value
    if enrollment.contract_signed_at is not None:
        document["contractSignedAt"] = format_timestamp(enrollment.contract_signed_at)
    return document


def enrollment_from_document(document: dict[str, Any]) -> Enrollment:
    contract_status = document.get("contractStatus")
    enrollment = Enrollment(
        id=document["id"],
        user_id=document.get("userId", ""),
        program_id=document.get("programId", ""),
        program_name=document.get("programName") or document.get("programId", ""),
        customization=document.get("customization"),
        status=document.get("status", "active"),
        contract_id=document.get("contractId"),
        contract_status=(
            parse_enum(ContractStatus, contract_status, ContractStatus.PENDING)
            if contract_status else None
        ),
        contract_signed_at=parse_timestamp(document.get("contractSignedAt")),
    )
    enrollment.enrolled_at = parse_timestamp(document.get("enrolledAt")) or enrollment.enrolled_at
    return enrollment


class EnrollmentRepository(Repository):

    async def get(self, enrollment_id: str) -> Optional[Enrollment]:
        if not enrollment_id.startswith(ENROLLMENT_PREFIX):
            return None
        document = await self._store.get(enrollment_id)
        if document is None:
            return None
        return enrollment_from_document(document)

    async def save(self, enrollment: Enrollment) -> None:
        await self._store.set(enrollment.id, enrollment_to_document(enrollment))

    async def list_for_user(self, user_id: str) -> list[Enrollment]:
        """One user's enrollments, newest first."""
        documents = await self._store.get_by_prefix(f"{ENROLLMENT_PREFIX}{user_id}:")
        enrollments = [enrollment_from_document(d) for d in documents if d.get("id")]
        enrollments.sort(key=lambda e: sort_key(e.enrolled_at), reverse=True)
        return enrollments

    async def list_for_program(self, program_id: str) -> list[Enrollment]:
        documents = await self._store.get_by_prefix(ENROLLMENT_PREFIX)
        return [
            enrollment_from_document(d)
            for d in documents
            if d.get("id") and d.get("programId") == program_id
        ]
