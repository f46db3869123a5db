"""Domain errors raised by the auction services.

Bid admission never raises these for ordinary rejections; it returns a
``BidOutcome`` carrying a ``RejectionReason`` instead. These exceptions cover
operator actions and lookups.
"""


class AuctionError(Exception):
    """Base class for domain errors. ``code`` is the stable machine-readable key."""

    code = "AUCTION_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class InvalidInputError(AuctionError):
    """Malformed or out-of-range input."""

    code = "VALIDATION_ERROR"


class NotFoundError(AuctionError):
    """Unknown auction, lot, catalog, vehicle or user."""

    code = "NOT_FOUND"


class StateConflictError(AuctionError):
    """The target is not in a state that allows the requested action."""

    code = "STATE_CONFLICT"


class AuthorizationGapError(AuctionError):
    """The caller lacks a deposit, an entry, or operator rights for the action."""

    code = "AUTHORIZATION_GAP"


class VehicleAlreadyAuctionedError(StateConflictError):
    """The vehicle already backs an open auction or an open catalog lot."""

    code = "VEHICLE_ALREADY_AUCTIONED"
