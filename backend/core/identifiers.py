# backend/core/identifiers.py

import secrets
import string
import time

_ALPHABET = string.ascii_lowercase + string.digits


def generate_prefixed_id(prefix: str, suffix_length: int = 9) -> str:
    """``<prefix>_<epoch millis>_<random base36>``, e.g. ``export_1718000000000_k3j9x0a2b``"""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(suffix_length))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"
