from __future__ import annotations

import secrets


def new_token(nbytes: int = 24) -> str:
    return secrets.token_urlsafe(nbytes)


def invitation_link(base_url: str, token: str) -> str:
    base = base_url if base_url.endswith("/") else f"{base_url}/"
    return f"{base}#/?token={token}"


def reset_link(base_url: str, token: str) -> str:
    base = base_url.rstrip("/")
    return f"{base}#/reset-password?token={token}"
