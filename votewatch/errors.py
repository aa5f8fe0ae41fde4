class VoteWatchError(Exception):
    """Base class for everything this package raises on purpose."""

    status_code = 500


class ProposalNotFound(VoteWatchError):
    status_code = 404


class InvalidProposalIdFormat(VoteWatchError, ValueError):
    status_code = 400


class CacheIOFailure(VoteWatchError):
    status_code = 500


class TransientFetchFailure(VoteWatchError):
    """A single chunk, event or delegate lookup failed.  The unit is skipped."""


class IdentityResolutionFailure(VoteWatchError):
    """Name lookup failed.  Callers fall back to the raw address."""


class DataIntegrityError(VoteWatchError):
    """The chain returned a value outside of what the contract allows."""
