from docsign.models.signing_session import SigningSession, SigningSessionStatus

__all__ = [
    "SigningSession",
    "SigningSessionStatus",
]
