"""
Enrollment, contract signing and the simulated payment step.

These are three independent flows. Enrolling never waits for payment and
payment never creates an enrollment; a caller that wants both calls both.
"""

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from ..core.wizard import CustomProgramWizard
from .api import AFSPClient

logger = logging.getLogger(__name__)


class SignatureError(ValueError):
    """The signature form is incomplete. Nothing was sent."""
    pass


class EnrollmentFlow:
    """Enrollment and contract calls as the athlete dashboard makes them."""

    def __init__(self, client: AFSPClient):
        self.client = client

    async def enroll(self, program: dict[str, Any]) -> list[dict[str, Any]]:
        """
        Enroll in a catalogue or public program and return the refreshed
        enrollment list, newest first.
        """
        await self.client.enroll(program["id"], program.get("name"), customization=None)
        body = await self.client.list_enrolled()
        return body.get("programs", [])

    async def enroll_custom(self, wizard: CustomProgramWizard) -> dict[str, Any]:
        """Submit a finished custom program wizard. Raises WizardError if unfinished."""
        request = wizard.build_enrollment_request()
        body = await self.client.enroll(
            request["programId"],
            request["programName"],
            customization=request["customization"],
        )
        wizard.reset()
        return body["enrollment"]

    async def sign_contract(
        self,
        enrollment_id: str,
        signature: str,
        agreed: bool,
        signed_at: Optional[datetime] = None,
    ) -> dict[str, Any]:
        if not signature.strip():
            raise SignatureError("Please enter your full name to sign")
        if not agreed:
            raise SignatureError("You must agree to the terms")

        timestamp = (signed_at or datetime.now(timezone.utc)).isoformat().replace("+00:00", "Z")
        body = await self.client.sign_contract(enrollment_id, signature.strip(), timestamp)
        return body["contract"]


# ---------------------------------------------------------------------------
# Simulated Payment
# ---------------------------------------------------------------------------

def format_card_number(value: str) -> str:
    """
    Group up to 16 digits in fours ("4242 4242 4242 4242").

    Input with fewer than four digits comes back unchanged.
    """
    digits = re.sub(r"\D", "", value)
    match = re.search(r"\d{4,16}", digits)
    if match is None:
        return value
    number = match.group(0)
    return " ".join(number[i:i + 4] for i in range(0, len(number), 4))


def format_expiry_date(value: str) -> str:
    """MM/YY from whatever digits were typed: "1226" -> "12/26"."""
    digits = re.sub(r"\D", "", value)
    if len(digits) >= 2:
        return f"{digits[:2]}/{digits[2:4]}"
    return digits


@dataclass
class CardDetails:
    card_number: str
    expiry_date: str
    cvv: str
    name_on_card: str
    zip_code: str = ""


@dataclass
class PaymentResult:
    success: bool
    transaction_id: str
    amount: Optional[float] = None
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SimulatedPayment:
    """
    Stand-in for a card processor.

    submit() waits processing_delay, reports success, waits
    success_display_delay and returns. No card data is validated or sent
    anywhere.
    """

    def __init__(
        self,
        processing_delay: float = 2.0,
        success_display_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.processing_delay = processing_delay
        self.success_display_delay = success_display_delay
        self._sleep = sleep

    async def submit(
        self,
        card: CardDetails,
        amount: Optional[float] = None,
        on_processed: Optional[Callable[[PaymentResult], None]] = None,
    ) -> PaymentResult:
        await self._sleep(self.processing_delay)
        result = PaymentResult(success=True, transaction_id=uuid.uuid4().hex, amount=amount)
        logger.info(
            "Simulated payment processed",
            extra={"transaction_id": result.transaction_id, "card_last4": card.card_number[-4:]}
        )
        if on_processed is not None:
            on_processed(result)

        await self._sleep(self.success_display_delay)
        return result
