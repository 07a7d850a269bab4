"""Error kinds raised by the puzzle provider, validator and high-score store."""


class PuzzleError(Exception):
    """A puzzle could not be obtained. Surfaces as the ERROR status."""

    kind = "PuzzleError"


class ProviderUnavailable(PuzzleError):
    """The model could not be reached or refused the request."""

    kind = "ProviderUnavailable"


class MalformedResponse(PuzzleError):
    """The model answered, but not with a usable puzzle."""

    kind = "MalformedResponse"


class PersistenceUnavailable(Exception):
    """The high-score store could not be read or written."""

    kind = "PersistenceUnavailable"
