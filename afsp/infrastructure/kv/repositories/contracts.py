"""
Repository for training contracts.

A contract is keyed by its enrollment ("contract:{enrollmentId}"), so
there is at most one agreement per enrollment and looking it up never
needs a scan.
"""

import logging
from typing import Any, Optional

from afsp.core.models import CONTRACT_VERSION, Contract, ContractStatus

from .base import Repository, format_timestamp, parse_enum, parse_timestamp, sort_key

logger = logging.getLogger(__name__)


CONTRACT_PREFIX = "contract:"


def contract_key(enrollment_id: str) -> str:
    return f"{CONTRACT_PREFIX}{enrollment_id}"


def contract_to_document(contract: Contract) -> dict[str, Any]:
    document: dict[str, Any] = {
        "id": contract.id,
        "enrollmentId": contract.enrollment_id,
        "userId": contract.user_id,
        "programId": contract.program_id,
        "programName": contract.program_name,
        "customization": contract.customization,
        "signature": contract.signature,
        "signedAt": format_timestamp(contract.signed_at),
        "status": contract.status.value,
        "version": contract.version,
        "createdAt": format_timestamp(contract.created_at),
    }
    return document


def contract_from_document(document: dict[str, Any]) -> Contract:
    contract = Contract(
        id=document["id"],
        enrollment_id=document.get("enrollmentId", ""),
        user_id=document.get("userId", ""),
        program_id=document.get("programId", ""),
        program_name=document.get("programName") or document.get("programId", ""),
        customization=document.get("customization"),
        signature=document.get("signature"),
        signed_at=parse_timestamp(document.get("signedAt")),
        status=parse_enum(ContractStatus, document.get("status"), ContractStatus.PENDING),
        version=document.get("version") or CONTRACT_VERSION,
    )
    contract.created_at = (
        parse_timestamp(document.get("createdAt"))
        or contract.signed_at
        or contract.created_at
    )
    return contract


def _recency(contract: Contract):
    # Signed contracts sort by signing time, pending ones by creation
    return sort_key(contract.signed_at or contract.created_at)


class ContractRepository(Repository):

    async def get_for_enrollment(self, enrollment_id: str) -> Optional[Contract]:
        document = await self._store.get(contract_key(enrollment_id))
        if document is None:
            return None
        return contract_from_document(document)

    async def save(self, contract: Contract) -> None:
        await self._store.set(contract.id, contract_to_document(contract))

    async def list_all(self, status: Optional[ContractStatus] = None) -> list[Contract]:
        """All contracts newest first, optionally filtered by status."""
        documents = await self._store.get_by_prefix(CONTRACT_PREFIX)
        contracts = [contract_from_document(d) for d in documents if d.get("id")]
        if status is not None:
            contracts = [c for c in contracts if c.status == status]
        contracts.sort(key=_recency, reverse=True)
        return contracts

    async def list_for_user(self, user_id: str) -> list[Contract]:
        return [c for c in await self.list_all() if c.user_id == user_id]
