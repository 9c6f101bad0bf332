"""External services used by the try-on pipeline."""

from .fal_client import FalTryOnClient, InferenceError
from .credit_ledger import CreditLedger, InsufficientCreditsError

__all__ = [
    "FalTryOnClient",
    "InferenceError",
    "CreditLedger",
    "InsufficientCreditsError",
]
