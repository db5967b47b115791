from fastapi import APIRouter, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from fairbet.config import settings
from fairbet.core.casino import Casino
from fairbet.core.idempotency import idempotent_request
from fairbet.core.logger import get_logger
from fairbet.core.schemas import (
    BlackjackDealRequest,
    DiceRollRequest,
    MinesRevealRequest,
    MinesStartRequest,
    Prediction,
    SessionActionRequest,
    bet_result,
)
from fairbet.core.security import get_user_id

logger = get_logger("api")

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit.enabled)

router = APIRouter()


# ==================== Helpers ====================

def get_casino(request: Request) -> Casino:
    return request.app.state.casino


def get_rate_limit():
    """Get rate limit string from config."""
    return settings.rate_limit.game_requests if settings.rate_limit.enabled else "1000/minute"


# ==================== Account Endpoints ====================

@router.get("/balance")
async def get_balance(request: Request):
    user_id = get_user_id(request)
    account = get_casino(request).cashier.require_account(user_id)
    return {"userId": account.id, "balance": account.balance}


@router.get("/bets")
async def get_bets(request: Request, limit: int = 50):
    user_id = get_user_id(request)
    casino = get_casino(request)
    casino.cashier.require_account(user_id)

    bets = casino.store.list_bets(user_id, limit=max(1, min(limit, 500)))
    return [
        {**bet.model_dump(mode="json", by_alias=True), "result": bet_result(bet)}
        for bet in bets
    ]


# ==================== Dice ====================

@router.get("/game/dice/odds")
async def dice_odds(
    request: Request,
    prediction: Prediction,
    target_value: int = Query(alias="targetValue"),
):
    return get_casino(request).dice.quote(prediction, target_value)


@router.post("/game/dice")
@limiter.limit(get_rate_limit)
@idempotent_request
async def dice_roll(request: Request, data: DiceRollRequest):
    user_id = get_user_id(request)
    return get_casino(request).dice.roll(user_id, data)


# ==================== Mines ====================

@router.post("/game/mines/start")
@limiter.limit(get_rate_limit)
@idempotent_request
async def mines_start(request: Request, data: MinesStartRequest):
    user_id = get_user_id(request)
    return get_casino(request).mines.start(user_id, data)


@router.post("/game/mines/reveal")
@limiter.limit(get_rate_limit)
@idempotent_request
async def mines_reveal(request: Request, data: MinesRevealRequest):
    user_id = get_user_id(request)
    return get_casino(request).mines.reveal(user_id, data)


@router.post("/game/mines/cashout")
@limiter.limit(get_rate_limit)
@idempotent_request
async def mines_cashout(request: Request, data: SessionActionRequest):
    user_id = get_user_id(request)
    return get_casino(request).mines.cash_out(user_id, data.session_id)


@router.get("/game/mines/{session_id}")
async def mines_state(request: Request, session_id: str):
    user_id = get_user_id(request)
    return get_casino(request).mines.state(user_id, session_id)


# ==================== Blackjack ====================

@router.post("/game/blackjack/deal")
@limiter.limit(get_rate_limit)
@idempotent_request
async def blackjack_deal(request: Request, data: BlackjackDealRequest):
    user_id = get_user_id(request)
    return get_casino(request).blackjack.deal(user_id, data)


@router.post("/game/blackjack/hit")
@limiter.limit(get_rate_limit)
@idempotent_request
async def blackjack_hit(request: Request, data: SessionActionRequest):
    user_id = get_user_id(request)
    return get_casino(request).blackjack.hit(user_id, data.session_id)


@router.post("/game/blackjack/stand")
@limiter.limit(get_rate_limit)
@idempotent_request
async def blackjack_stand(request: Request, data: SessionActionRequest):
    user_id = get_user_id(request)
    return get_casino(request).blackjack.stand(user_id, data.session_id)


@router.get("/game/blackjack/{session_id}")
async def blackjack_state(request: Request, session_id: str):
    user_id = get_user_id(request)
    return get_casino(request).blackjack.state(user_id, session_id)
