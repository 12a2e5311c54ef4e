from .verification_schemas import UnlockRequest
