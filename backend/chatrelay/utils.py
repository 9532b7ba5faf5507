"""Small helpers shared by the persistence engine and services."""
import time

MS_PER_DAY = 24 * 60 * 60 * 1000

# Range of an SQLite INTEGER column
MAX_TIMESTAMP = 2**63 - 1
MIN_TIMESTAMP = -(2**63)


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def retention_cutoff(retention_days: int, now: int) -> int:
    """Epoch-ms cutoff for a retention period ending at ``now``."""
    return now - retention_days * MS_PER_DAY


def clamp_timestamp(value: int) -> int:
    """Clamp an epoch-ms value into the storable INTEGER range."""
    return max(MIN_TIMESTAMP, min(MAX_TIMESTAMP, value))
