"""
Credential formatting for the remote API and git transport.

Tokens are opaque and owned by the caller; nothing here stores them.
"""

import base64
from typing import Dict, Optional


def bearer_headers(token: Optional[str]) -> Dict[str, str]:
    """Authorization header for REST API requests."""
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}


def basic_auth_header(token: Optional[str]) -> Optional[str]:
    """Basic authorization value understood by GitHub's smart-HTTP endpoint."""
    if not token:
        return None
    basic = base64.b64encode(f"{token}:x-oauth-basic".encode("utf-8")).decode("ascii")
    return f"Basic {basic}"


def git_auth_env(token: Optional[str]) -> Dict[str, str]:
    """
    Environment carrying an ``http.extraHeader`` for a single git network command.

    Passed through GIT_CONFIG_* variables so the credential never lands in
    the repository's config file.
    """
    header = basic_auth_header(token)
    if header is None:
        return {}
    return {
        "GIT_CONFIG_COUNT": "1",
        "GIT_CONFIG_KEY_0": "http.extraHeader",
        "GIT_CONFIG_VALUE_0": f"Authorization: {header}",
        "GIT_TERMINAL_PROMPT": "0",
    }


def mask_token(token: Optional[str]) -> str:
    """Log-safe rendering of a token."""
    if not token:
        return "<none>"
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"
