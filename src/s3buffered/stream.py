"""Blocking file-like facade over an UploadSession.

UploadStream lets synchronous producers (``shutil.copyfileobj``, pickle,
csv writers, ...) feed a multipart upload. Session coroutines run on an
event loop in a background thread; every call blocks until its coroutine
finishes. Ordering and buffer consistency still come from the session's
mutex, not from the blocking.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import io
import logging
import threading
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

from s3buffered.client.base import MultipartClient
from s3buffered.session import UploadSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Upper bound on the blocking teardown in close(), in seconds
DEFAULT_CLOSE_TIMEOUT = 300.0


class LoopThread:
    """An asyncio event loop running forever in a dedicated thread."""

    def __init__(self, name: str = "s3buffered-loop") -> None:
        self.name = name
        self.loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()

    def start(self) -> "LoopThread":
        """Start the loop thread.

        Raises:
            RuntimeError: If already started or the loop fails to start.
        """
        if self._thread is not None:
            raise RuntimeError("LoopThread already started")
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        if not self._ready.wait(timeout=5.0):
            raise RuntimeError("Event loop failed to start within timeout")
        return self

    def _run(self) -> None:
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self._ready.set()
        try:
            self.loop.run_forever()
        finally:
            self.loop.close()

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self, coroutine: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        """Run a coroutine on the loop and block until it returns.

        Raises:
            TimeoutError: If ``timeout`` seconds pass first. The coroutine
                is cancelled.
        """
        if self.loop is None:
            coroutine.close()
            raise RuntimeError("LoopThread not started")
        future = asyncio.run_coroutine_threadsafe(coroutine, self.loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def stop(self, timeout: float = 10.0) -> None:
        if self.loop is None or self._thread is None:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("Loop thread %s did not stop within timeout", self.name)
        self._thread = None


class UploadStream(io.BufferedIOBase):
    """Synchronous write-only stream onto an S3 multipart upload.

    Attributes:
        session: The UploadSession doing the work.
    """

    def __init__(
        self,
        session: UploadSession,
        loop_thread: LoopThread,
        owns_loop: bool = False,
        close_timeout: float | None = DEFAULT_CLOSE_TIMEOUT,
    ) -> None:
        """Wrap a session whose client lives on ``loop_thread``.

        Args:
            session: The session to drive.
            loop_thread: A started LoopThread the session's client is bound to.
            owns_loop: Stop the loop thread when the stream closes.
            close_timeout: Seconds close() waits for the upload to finish.
                None waits indefinitely.
        """
        super().__init__()
        self.session = session
        self.close_timeout = close_timeout
        self._loop_thread = loop_thread
        self._owns_loop = owns_loop
        self._client: MultipartClient | None = None

    @classmethod
    def open(
        cls,
        client_factory: Callable[[], MultipartClient],
        bucket: str | None = None,
        key: str | None = None,
        close_timeout: float | None = DEFAULT_CLOSE_TIMEOUT,
        **options: Any,
    ) -> "UploadStream":
        """Create a client on a fresh loop thread and open a stream with it.

        The client is built and initialised inside the loop thread and
        closed again when the stream closes.

        Args:
            client_factory: Zero-argument callable returning a client.
            bucket: Target bucket.
            key: Target object key.
            close_timeout: Seconds close() waits for the upload to finish.
            **options: Further UploadSession keyword arguments.
        """
        loop_thread = LoopThread().start()

        async def _build() -> tuple[MultipartClient, UploadSession]:
            client = client_factory()
            await client.init()
            return client, UploadSession(client, bucket, key, **options)

        try:
            client, session = loop_thread.run(_build())
        except BaseException:
            loop_thread.stop()
            raise
        stream = cls(session, loop_thread, owns_loop=True, close_timeout=close_timeout)
        stream._client = client
        return stream

    def _run(self, make: Callable[[], Awaitable[T]], timeout: float | None = None) -> T:
        async def _call() -> T:
            return await make()

        return self._loop_thread.run(_call(), timeout)

    # -- io.BufferedIOBase ----------------------------------------------------

    def readable(self) -> bool:
        return False

    def seekable(self) -> bool:
        return False

    def writable(self) -> bool:
        return True

    def write(self, data: Any) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed file.")
        if isinstance(data, memoryview):
            data = data.tobytes()
        return self._run(lambda: self.session.write(data))

    def flush(self) -> None:
        if self.closed or not self._loop_thread.is_alive:
            return
        self._run(self.session.flush)

    def close(self) -> None:
        if self.closed:
            return
        if not self._loop_thread.is_alive:
            # nothing can run any more, e.g. during interpreter shutdown
            logger.warning(
                "Loop thread gone before close, upload %s left unfinished: %s/%s",
                self.session.upload_id,
                self.session.bucket,
                self.session.key,
            )
            super().close()
            return
        try:
            self._run(self.session.aclose, self.close_timeout)
        finally:
            try:
                if self._client is not None:
                    self._run(self._client.close, self.close_timeout)
            finally:
                super().close()
                if self._owns_loop:
                    self._loop_thread.stop()

    def __exit__(self, exc_type, exc, tb) -> None:
        # an exception inside the with-block aborts instead of completing
        if exc_type is not None:
            self.cancel()
        self.close()

    def cancel(self) -> None:
        """Request cancellation; the next close aborts the upload."""
        self.session.cancel()

    def read(self, size: int | None = -1) -> bytes:
        return self.session.read()

    def read1(self, size: int = -1) -> bytes:
        return self.session.read()

    def readinto(self, buffer: Any) -> int:
        return self.session.read()

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self.session.seek(offset, whence)

    def tell(self) -> int:
        return self.session.tell()

    def truncate(self, size: int | None = None) -> int:
        return self.session.truncate(size)

    @property
    def length(self) -> int:
        """Bytes acknowledged by the service so far."""
        return self.session.length

    @property
    def state(self):
        return self.session.state
