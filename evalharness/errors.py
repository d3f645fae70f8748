"""Error taxonomy for sweep campaigns.

Configuration errors abort a campaign before any trial runs. Trial errors are
recorded per row and the sweep goes on. Sink errors are fatal for the sink
they concern but never touch rows that were already committed.
"""

from __future__ import annotations


class SweepError(Exception):
    """Base exception for evalharness."""


class ConfigurationError(SweepError):
    """Dimension, header or config value is invalid; fatal for the campaign."""


class RowStateError(ConfigurationError):
    """Row lifecycle misuse (second open row, commit without open row)."""


class SinkIOError(SweepError):
    """The durable destination of a sink could not be opened or written."""


class TrialError(SweepError):
    """Base for per-trial errors that end up as a recorded outcome."""


class TrialTimeout(TrialError):
    """Trial did not finish within the allotted time."""


class TrialFailure(TrialError):
    """Trial body raised, subprocess wrote to stderr, or result parsing failed."""


class TrialCancelled(BaseException):
    """Raised inside an abandoned worker thread after its trial timed out.

    Derives from BaseException so that broad ``except Exception`` blocks in
    trial bodies do not swallow the cancellation.
    """
