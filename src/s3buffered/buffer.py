"""Part accumulation buffer."""

from __future__ import annotations


class PartBuffer:
    """A capacity-bounded byte accumulator for the next part.

    The buffer never holds more than ``capacity`` bytes, plus one extra byte
    once the residual slot has been reserved (used when the upload is
    encrypted and every non-final part withholds its last byte).
    """

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self._data = bytearray()
        self._residual_slot = False

    def __len__(self) -> int:
        return len(self._data)

    @property
    def limit(self) -> int:
        """Maximum number of bytes the buffer may hold."""
        return self.capacity + (1 if self._residual_slot else 0)

    @property
    def available(self) -> int:
        return self.limit - len(self._data)

    def reserve_residual_slot(self) -> None:
        self._residual_slot = True

    def extend(self, data: memoryview) -> int:
        """Append as much of ``data`` as fits and return the count copied."""
        room = self.available
        if room <= 0:
            return 0
        chunk = data[:room]
        self._data += chunk
        return len(chunk)

    def part(self, withhold_last: bool = False) -> bytes:
        """Return the bytes of the next part without consuming them."""
        if withhold_last and self._data:
            return bytes(self._data[:-1])
        return bytes(self._data)

    def reset(self, keep_last: bool = False) -> None:
        """Empty the buffer, re-seeding it with its last byte if asked."""
        if keep_last and self._data:
            del self._data[:-1]
        else:
            self._data.clear()

    def release(self) -> None:
        self._data = bytearray()
