"""
Wagering error taxonomy.

Every error a controller raises derives from WagerError and carries the HTTP
status the API layer answers with. IntegrityFatal and its subclasses mean the
operation was aborted; they are never turned into a successful result.
"""


class WagerError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WagerError):
    """Malformed or out-of-range input, or an action the session state does not allow."""


class InsufficientBalanceError(WagerError):
    def __init__(self, balance: int, bet_amount: int):
        super().__init__("Insufficient balance")
        self.balance = balance
        self.bet_amount = bet_amount


class NotFoundError(WagerError):
    status_code = 404


class ConcurrentUpdateError(WagerError):
    """The balance changed between the read and the write, e.g. from another worker."""

    status_code = 409

    def __init__(self, user_id: int):
        super().__init__("Balance changed concurrently, retry the request")
        self.user_id = user_id


class IntegrityFatal(WagerError):
    status_code = 500


class EntropyError(IntegrityFatal):
    pass


class DeckExhaustedError(IntegrityFatal):
    pass


class NegativeBalanceError(IntegrityFatal):
    def __init__(self, user_id: int, balance: int):
        super().__init__(f"Refusing to set balance of user {user_id} to {balance}")
        self.user_id = user_id
        self.balance = balance
