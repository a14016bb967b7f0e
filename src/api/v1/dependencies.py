from __future__ import annotations

import secrets

from fastapi import Header, HTTPException, status

from config import settings


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-KEY")) -> None:
    expected = settings.api_key
    if not expected:
        return
    if not x_api_key or not secrets.compare_digest(x_api_key, expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden: Invalid API key")
