from settings import settings


def build_verification_url(signature_id: int, base_url: str | None = None, kind: str | None = None) -> str:
    """Signature ids are only unique per table, so QR links name the kind."""
    base = (base_url or settings.verification_url).rstrip("/")
    url = f"{base}/verify/{signature_id}"
    return f"{url}?type={kind}" if kind else url
