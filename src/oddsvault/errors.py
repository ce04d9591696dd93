"""Error kinds raised by the odds core."""


class OddsVaultError(Exception):
    """Base exception for oddsvault"""
    def __init__(self, message: str, code: str = "ODDSVAULT_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self):
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
        }


class OddsNotFoundError(OddsVaultError):
    """Requested id is absent from the store"""
    def __init__(self, odds_id):
        self.odds_id = odds_id
        super().__init__(f"Betting odds not found with id: {odds_id}", code="NOT_FOUND")


class InvalidOddsError(OddsVaultError):
    """Odds outside [1.01, 999.99] or another domain rule violation"""
    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message, code="INVALID_ODDS")


class StoreError(OddsVaultError):
    """The relational store failed or is unreachable"""
    def __init__(self, message: str):
        super().__init__(message, code="STORE_UNAVAILABLE")


class CacheError(Exception):
    """Cache transport or serialization failure. Never leaves the service layer."""
