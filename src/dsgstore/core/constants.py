"""
Constants and enumerations shared across dsgstore.

Centralizes defaults for the dataset handle pool and the policy applied
when a query needs external values but names no timestamp.
"""

from enum import Enum


class MissingTimestampPolicy(str, Enum):
    """What to do when a joined or external-only query has no timestamp."""

    LATEST = 'latest'
    """Use the last step of the time axis."""

    FIRST = 'first'
    """Use the first step of the time axis."""

    REJECT = 'reject'
    """Raise ``MissingTimestamp`` before any record is read."""


class PoolDefaults:
    """
    Default sizing for the external dataset handle pool.

    Sized for a server answering queries against a few dozen station files.
    """

    MAX_OPEN_HANDLES = 64
    """Hard limit on simultaneously open dataset handles."""

    MAX_IDLE_HANDLES = 32
    """Released handles kept open for reuse."""

    IDLE_TIMEOUT = 600.0
    """Seconds an idle handle may stay open before it is closed."""


DEFAULT_ROW_CHUNK_SIZE = 1000
"""Vector rows read from a shapefile per chunk."""

CF_TIMESERIES_ID = 'timeseries_id'
"""``cf_role`` value marking the station identifier variable (CF 1.6+ DSG)."""
