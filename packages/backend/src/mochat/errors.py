"""Domain error taxonomy.

Learn: Services raise these; the HTTP layer maps them to status codes
(see api/deps.py) and the realtime layer turns them into acks or empty
routing decisions. Nothing in the live fan-out path lets them escape.
"""


class MochatError(Exception):
    """Base class for all domain errors."""


class AuthenticationFailure(MochatError):
    """Credential missing, malformed, unknown, or belongs to an inactive identity."""


class NotFoundError(MochatError):
    """Unknown identity, conversation, group, workspace, or message."""


class AuthorizationDenied(MochatError):
    """Caller cannot see or act on the target conversation."""


class ValidationError(MochatError):
    """Request is well-formed but violates a domain rule."""


class InvariantViolation(MochatError):
    """Forward and reverse indexes disagree. A programming error."""
