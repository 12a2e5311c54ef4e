from .pin_gate import PinGate
from .verification_service import SignatureKind, VerificationService

__all__ = ['PinGate', 'SignatureKind', 'VerificationService']
