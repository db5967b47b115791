"""
Request identity helpers.

Authentication happens upstream; this service only reads the user id the auth
layer leaves in the `user_id` cookie.
"""

from fastapi import HTTPException, Request


def get_user_id(request: Request) -> int:
    """User id set by the upstream auth layer. Raises 401 when it is missing or malformed."""
    user_id = request.cookies.get("user_id")

    if not user_id:
        raise HTTPException(status_code=401, detail="Not logged in")

    try:
        return int(user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id")
