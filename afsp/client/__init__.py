"""
Async client SDK for the AFSP API.

Carries the front-end flows that aren't rendering: the session
lifecycle, enrollment and contract signing, the simulated payment step,
chat polling and search debouncing.
"""

from .api import AFSPClient, APIError, NetworkError
from .chat import Debouncer, MessagePoller
from .enrollment import (
    CardDetails,
    EnrollmentFlow,
    PaymentResult,
    SignatureError,
    SimulatedPayment,
    format_card_number,
    format_expiry_date,
)
from .session import ClientSession, SessionManager, SessionStore

__all__ = [
    "AFSPClient",
    "APIError",
    "CardDetails",
    "ClientSession",
    "Debouncer",
    "EnrollmentFlow",
    "MessagePoller",
    "NetworkError",
    "PaymentResult",
    "SessionManager",
    "SessionStore",
    "SignatureError",
    "SimulatedPayment",
    "format_card_number",
    "format_expiry_date",
]
