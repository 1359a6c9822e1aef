import secrets
from typing import Optional


def verify_api_key(provided: Optional[str], expected: str) -> bool:
    # An empty configured key means admin endpoints are disabled
    if not expected or not provided:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())
