# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from collections.abc import AsyncIterator, Awaitable, Callable
from io import BytesIO
from typing import Self

# The default chunk size for iterating streams.
_DEFAULT_CHUNK_SIZE = 1024


class AsyncBytesReader:
    """An in-memory file-like object with async read and seek methods.

    Signers and verifiers put one of these in place of an async request body that
    had to be drained for hashing, so the body can be read again from the start.
    """

    def __init__(self, data: bytes | bytearray | BytesIO):
        """Initializes self.

        :param data: The buffered body. A ``BytesIO`` is used as-is, including its
            current position.
        """
        if isinstance(data, bytes | bytearray):
            self._buffer = BytesIO(data)
        else:
            self._buffer = data

    async def read(self, size: int = -1) -> bytes:
        """Read a number of bytes from the stream.

        :param size: The maximum number of bytes to read. If less than 0, all bytes will
            be read.
        """
        return self._buffer.read(size)

    async def seek(self, offset: int, whence: int = 0) -> int:
        """Moves the cursor to a position relative to the position indicated by whence.

        :param offset: The amount of movement to be done relative to whence.
        :param whence: 0 for the start of the stream, 1 for the cursor, 2 for the end.
        :returns: Returns the new position of the cursor.
        """
        return self._buffer.seek(offset, whence)

    def tell(self) -> int:
        """Returns the position of the cursor."""
        return self._buffer.tell()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_chunks()

    def iter_chunks(
        self, chunk_size: int = _DEFAULT_CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        """Iterate over the reader in chunks of a given size.

        :param chunk_size: The maximum size of each chunk. If less than 0, the entire
            reader will be read into one chunk.
        """
        return _AsyncByteStreamIterator(self.read, chunk_size)


class _AsyncByteStreamIterator:
    """An async bytes iterator that operates over an async read method."""

    def __init__(self, read: Callable[[int], Awaitable[bytes]], chunk_size: int):
        self._read = read
        self._chunk_size = chunk_size

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> bytes:
        data = await self._read(self._chunk_size)
        if data:
            return data
        raise StopAsyncIteration
