"""
Error taxonomy shared by the services and the HTTP boundary.

Every error carries a machine-readable ``kind`` and an optional human-readable
``detail``; ``dutytrack.main`` maps kinds to HTTP status codes.
"""


class DutyTrackError(Exception):
    kind = "internal"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.kind)
        self.detail = detail

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind} detail={self.detail!r}>"


class InvalidArgument(DutyTrackError):
    kind = "invalid_argument"


class PermissionDenied(DutyTrackError):
    kind = "permission_denied"


class PreconditionFailed(DutyTrackError):
    kind = "precondition_failed"


class InvalidTransition(PreconditionFailed):
    """A state change was requested from a state that does not allow it."""

    kind = "invalid_transition"


class NotFound(DutyTrackError):
    kind = "not_found"


class UpstreamUnavailable(DutyTrackError):
    kind = "upstream_unavailable"


# --- identity provider ---


class InvalidCredentials(DutyTrackError):
    kind = "invalid_credentials"


class EmailInUse(DutyTrackError):
    kind = "email_in_use"


class WeakPassword(InvalidArgument):
    kind = "weak_password"


class InvalidEmail(InvalidArgument):
    kind = "invalid_email"
