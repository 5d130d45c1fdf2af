"""Upload notifications.

Every UploadSession owns an UploadEvents emitter. Listeners are registered
with ``session.events.on(UploadEvents.COMPLETED, listener)`` (or as a
decorator) and are called synchronously, in registration order, as
``listener(session, payload)``. A listener that raises aborts the emit and
the exception reaches the caller of the session operation.
"""

import logging
from typing import Any

from pyee import EventEmitter

logger = logging.getLogger(__name__)


class UploadEvents(EventEmitter):
    """Emitter for the five notifications an UploadSession fires."""

    # After CreateMultipartUpload
    INITIATED = "initiated"
    # (session, InitiateResponse)

    # After each data-carrying part
    PART_UPLOADED = "part_uploaded"
    # (session, PartResponse)

    # While a part is transmitted; only forwarded when PART_UPLOADED has
    # listeners and the part carries data
    TRANSFER_PROGRESS = "transfer_progress"
    # (session, TransferProgress)

    # After CompleteMultipartUpload
    COMPLETED = "completed"
    # (session, CompleteResponse)

    # After AbortMultipartUpload
    ABORTED = "aborted"
    # (session, AbortResponse)

    def has_listeners(self, event: str) -> bool:
        return bool(self.listeners(event))

    def emit(self, event: str, *args: Any, **kwargs: Any) -> bool:
        """Emit an event, logging it at DEBUG.

        Returns:
            True if any listener was called.
        """
        if event != self.TRANSFER_PROGRESS:
            logger.debug("Emitting %s to %d listener(s)", event, len(self.listeners(event)))
        return super().emit(event, *args, **kwargs)
