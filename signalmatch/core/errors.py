"""Exception types raised inside the signaling core."""


class SignalingError(Exception):
    """Base class for signalmatch errors."""


class DuplicateConnection(SignalingError):
    """A connection id was registered while already live."""

    def __init__(self, participant_id: str):
        super().__init__(f"Connection {participant_id} is already registered")
        self.participant_id = participant_id


class InconsistentPairing(SignalingError):
    """A pairing does not point back symmetrically.

    Only raised when the single-lock discipline has been violated somewhere.
    """

    def __init__(self, participant_id: str, partner_id: str | None, back_reference: str | None):
        super().__init__(
            f"Inconsistent pairing: {participant_id} -> {partner_id}, "
            f"but {partner_id} -> {back_reference}"
        )
        self.participant_id = participant_id
        self.partner_id = partner_id
        self.back_reference = back_reference


class ProtocolError(SignalingError):
    """An inbound frame could not be understood."""
