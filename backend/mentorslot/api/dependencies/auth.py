"""
Caller identity.

Authentication happens upstream; the gateway forwards the verified user id
in a header and the engine trusts it.
"""

from typing import Optional

from fastapi import Header

from ...core.exceptions import UnauthorizedException


def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedException("Authentication required", code="NOT_AUTHENTICATED")
    return x_user_id.strip()
