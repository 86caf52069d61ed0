"""Errors raised by the scan ingestion pipeline."""


class ScanError(Exception):
    """Base class for scan pipeline failures."""


class RecognitionUnavailable(ScanError):
    """The recognition service could not be reached or returned an error."""


class RecognitionEmpty(ScanError):
    """The recognition service returned no usable text."""


class InvalidIdentifierFormat(ScanError):
    """A candidate VIN does not have the required length."""

    def __init__(self, length: int) -> None:
        super().__init__(f"Invalid VIN length: {length}")
        self.length = length


class DuplicateIdentifier(ScanError):
    """The VIN was already recorded in the session."""

    def __init__(self, vin: str, session_id: str) -> None:
        super().__init__(f"VIN {vin} already recorded in session {session_id}")
        self.vin = vin
        self.session_id = session_id


class VideoDecodeError(ScanError):
    """A video asset could not be opened."""


class LocationUnavailable(ScanError):
    """No geolocation fix could be obtained."""


class InactiveLocation(ScanError):
    """A session was requested for a location that is not active."""

    def __init__(self, location: str) -> None:
        super().__init__(f"Location is not active: {location}")
        self.location = location


class CaptureStateError(ScanError):
    """A coordinator operation was invoked in a state that forbids it."""


class UnknownSession(ScanError):
    """No active session exists with the given id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"No active session: {session_id}")
        self.session_id = session_id


class SessionClosed(ScanError):
    """The session was finished and accepts no more scans."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session is closed: {session_id}")
        self.session_id = session_id
