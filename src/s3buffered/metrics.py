"""Prometheus metrics definitions for s3buffered.

All metrics use the ``s3buffered_`` prefix for namespace isolation. They
are process-wide totals across every UploadSession; counters reset to zero
on restart.
"""

from __future__ import annotations

from prometheus_client import Counter

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# Upload lifecycle counter  (labels: outcome)
# ---------------------------------------------------------------------------
uploads_total: Counter | None = None

# ---------------------------------------------------------------------------
# Part and byte counters
# ---------------------------------------------------------------------------
parts_uploaded_total: Counter | None = None
bytes_uploaded_total: Counter | None = None

# ---------------------------------------------------------------------------
# Mutex contention
# ---------------------------------------------------------------------------
lock_timeouts_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    This must be called once when metrics are enabled.  When metrics are
    disabled the module-level references stay ``None`` and no collectors
    are registered in the global registry.
    """
    global _initialized
    global uploads_total, parts_uploaded_total, bytes_uploaded_total, lock_timeouts_total

    if _initialized:
        return

    uploads_total = Counter(
        "s3buffered_uploads_total",
        "Multipart uploads by lifecycle outcome",
        ["outcome"],
    )

    parts_uploaded_total = Counter(
        "s3buffered_parts_uploaded_total",
        "Total parts acknowledged by the object store",
    )

    bytes_uploaded_total = Counter(
        "s3buffered_bytes_uploaded_total",
        "Total bytes acknowledged by the object store",
    )

    lock_timeouts_total = Counter(
        "s3buffered_lock_timeouts_total",
        "Session operations that gave up waiting for the session lock",
    )

    _initialized = True


def record_outcome(outcome: str) -> None:
    """Count an upload reaching ``initiated``, ``completed`` or ``aborted``."""
    if uploads_total is not None:
        uploads_total.labels(outcome=outcome).inc()


def record_part(size: int) -> None:
    """Count one acknowledged part of ``size`` bytes."""
    if parts_uploaded_total is not None:
        parts_uploaded_total.inc()
    if bytes_uploaded_total is not None:
        bytes_uploaded_total.inc(size)
