"""
Idempotency decorator to prevent duplicate wagering requests.
"""

from functools import wraps

from fastapi import HTTPException, Request

from fairbet.config import settings
from fairbet.core.logger import get_logger
from fairbet.core.security import get_user_id

logger = get_logger("idempotency")


def idempotent_request(func):
    """
    Decorator to ensure a wagering request is processed only once.

    Resolves the caller first, then checks for an 'Idempotency-Key' header
    and records it in the account store per user, so a retried roll or reveal
    is rejected instead of charged twice. A request without a valid user is
    refused before its key is recorded.

    Raises:
        HTTPException(401): If the request carries no valid user id.
        HTTPException(400): If the header is missing and keys are required.
        HTTPException(409): If the key has already been processed.
    """
    @wraps(func)
    async def wrapper(request: Request, *args, **kwargs):
        user_id = get_user_id(request)
        idempotency_key = request.headers.get("Idempotency-Key")

        if not idempotency_key:
            if settings.idempotency.required:
                raise HTTPException(
                    status_code=400, detail="Idempotency-Key header is required"
                )
            return await func(request, *args, **kwargs)

        store = request.app.state.casino.store
        scoped_key = f"{user_id}:{idempotency_key}"

        if store.is_key_used(scoped_key):
            logger.warning("Duplicate request rejected", extra={"key": scoped_key})
            raise HTTPException(
                status_code=409,
                detail="This request has already been processed.",
            )

        # Mark key as used BEFORE processing the request
        store.mark_key_used(scoped_key)

        return await func(request, *args, **kwargs)

    return wrapper
