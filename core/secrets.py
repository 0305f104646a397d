"""
Credential lookup for the Google APIs and deployment sanity checks.

Service account JSON is read from SHEETS_CREDENTIALS_JSON (base64) first,
then from a file path. Nothing here raises: a missing or unreadable
credential is reported as ``None`` and the caller decides how loud to be.
"""

import base64
import json
import logging
import os
from typing import List, Optional

logger = logging.getLogger(__name__)

MIN_JWT_SECRET_LENGTH = 32


def _decode_inline_credentials(encoded: str) -> Optional[dict]:
    try:
        return json.loads(base64.b64decode(encoded).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning(f"SHEETS_CREDENTIALS_JSON is not valid base64 JSON: {e}")
        return None


def get_service_account_info(credentials_file: Optional[str] = None) -> Optional[dict]:
    """Return the service account dict, or None when no usable source exists.

    ``credentials_file`` wins over SHEETS_CREDENTIALS_FILE; the inline
    environment value wins over both.
    """
    inline = os.getenv("SHEETS_CREDENTIALS_JSON")
    if inline:
        info = _decode_inline_credentials(inline)
        if info is not None:
            return info

    path = credentials_file or os.getenv("SHEETS_CREDENTIALS_FILE")
    if not path or not os.path.exists(path):
        return None
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, ValueError) as e:
        logger.warning(f"Unreadable service account file {path}: {e}")
        return None


def check_production_readiness(credentials_file: Optional[str] = None) -> List[str]:
    """List settings that work locally but should not reach a real shop."""
    problems = []

    signing_key = os.getenv("JWT_SECRET_KEY", "")
    if not signing_key:
        problems.append("JWT_SECRET_KEY unset: login tokens use a per-process key and die on restart")
    elif len(signing_key) < MIN_JWT_SECRET_LENGTH:
        problems.append(f"JWT_SECRET_KEY shorter than {MIN_JWT_SECRET_LENGTH} characters")

    has_oauth_token = bool(os.getenv("SHEETS_TOKEN_FILE"))
    if not has_oauth_token and get_service_account_info(credentials_file) is None:
        problems.append("No Google credentials found (SHEETS_CREDENTIALS_JSON, SHEETS_CREDENTIALS_FILE or SHEETS_TOKEN_FILE)")

    origins = os.getenv("CORS_ORIGINS", "").strip()
    if origins in ("", "*"):
        problems.append("CORS_ORIGINS allows every origin; list the shop's front-end hosts")

    return problems
