"""
Shared route dependencies.
"""
from typing import Optional
from fastapi import Header, HTTPException, Query, status


def get_access_key(
    k: Optional[str] = Query(None, description="Trip access key"),
    x_access_key: Optional[str] = Header(None)
) -> str:
    """Read the trip access key from the ``k`` query parameter or ``X-Access-Key`` header."""
    access_key = k or x_access_key
    if not access_key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Access key is required"
        )
    return access_key
