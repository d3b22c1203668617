"""
Contract endpoints for the signed-in athlete.

Enrollment creates a pending contract; signing moves it to signed and
mirrors the state onto the enrollment. Enrollments made before contracts
existed have no pending record, so signing one creates the contract
directly in the signed state.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.models import Contract, ContractStateError, ContractStatus
from ...infrastructure.kv.repositories.base import parse_timestamp
from ...infrastructure.kv.repositories.contracts import contract_key, contract_to_document
from ..dependencies import ContractRepositoryDep, CurrentUser, EnrollmentRepositoryDep

logger = logging.getLogger(__name__)

router = APIRouter()


class SignContractRequest(BaseModel):
    """
    Signature submission.

    signature is the typed full name, recorded exactly as sent. signedAt
    is the client's ISO timestamp; the server time is used when absent or
    unparseable.
    """
    model_config = ConfigDict(populate_by_name=True)

    enrollment_id: Optional[str] = Field(default=None, alias="enrollmentId")
    signature: Optional[str] = None
    signed_at: Optional[str] = Field(default=None, alias="signedAt")


@router.post("/sign", summary="Sign the contract for one of the caller's enrollments")
async def sign_contract(
    request: SignContractRequest,
    user: CurrentUser,
    enrollments: EnrollmentRepositoryDep,
    contracts: ContractRepositoryDep,
) -> dict[str, Any]:
    if not request.enrollment_id or not request.signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields",
        )

    enrollment = await enrollments.get(request.enrollment_id)
    if enrollment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Enrollment not found",
        )

    if enrollment.user_id != user.user_id:
        logger.warning(
            "Contract signing denied",
            extra={"user_id": user.user_id, "enrollment_id": enrollment.id}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized to sign this contract",
        )

    contract = await contracts.get_for_enrollment(enrollment.id)
    if contract is None:
        contract = Contract(
            id=contract_key(enrollment.id),
            enrollment_id=enrollment.id,
            user_id=enrollment.user_id,
            program_id=enrollment.program_id,
            program_name=enrollment.program_name or enrollment.program_id,
            customization=enrollment.customization,
        )

    try:
        contract.sign(request.signature, signed_at=parse_timestamp(request.signed_at))
    except ContractStateError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Contract already signed",
        )

    await contracts.save(contract)

    enrollment.contract_id = contract.id
    enrollment.contract_status = ContractStatus.SIGNED
    enrollment.contract_signed_at = contract.signed_at
    await enrollments.save(enrollment)

    logger.info(
        "Contract signed",
        extra={"user_id": user.user_id, "contract_id": contract.id}
    )

    return {"success": True, "contract": contract_to_document(contract)}


@router.get("", summary="The caller's contracts, newest first")
async def list_contracts(user: CurrentUser, contracts: ContractRepositoryDep) -> dict[str, Any]:
    return {
        "contracts": [
            contract_to_document(c) for c in await contracts.list_for_user(user.user_id)
        ]
    }


@router.get("/enrollment/{enrollment_id}", summary="Contract for one enrollment")
async def get_contract_for_enrollment(
    enrollment_id: str,
    user: CurrentUser,
    contracts: ContractRepositoryDep,
) -> dict[str, Any]:
    """
    Contract lookup by enrollment.

    A missing contract is not an error: the response says so with
    contract null and signed false.
    """
    contract = await contracts.get_for_enrollment(enrollment_id)
    if contract is None:
        return {"contract": None, "signed": False}

    if contract.user_id != user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")

    return {"contract": contract_to_document(contract), "signed": contract.is_signed}
