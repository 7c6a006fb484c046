# ============================================================
# errors.py - Error taxonomy of the reservation ledger
# ------------------------------------------------------------
# The ledger raises these; api.py maps each kind onto an HTTP
# status code. Storage backends never raise them for a missing
# row: they return None / False and let the caller decide.
# ============================================================


class ParkingError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ParkingError):
    """Malformed input, rejected before any mutation."""
    status_code = 400


class InvalidCredentials(ParkingError):
    status_code = 401


class Forbidden(ParkingError):
    """Suspended user booking/cancelling, or a non-owner cancelling."""
    status_code = 403


class NotFound(ParkingError):
    status_code = 404


class Conflict(ParkingError):
    """Slot already taken, reservation no longer active, or a blocked delete."""
    status_code = 409
