# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Stream shapes a request body may take.

A body matching one of the seekable protocols is hashed in place and rewound
afterwards. Any other iterable body is buffered and replaced on the request.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Seekable(Protocol):
    """A file-like object whose read position can be saved and restored."""

    def seek(self, offset: int, whence: int = 0, /) -> int: ...

    def tell(self) -> int: ...


@runtime_checkable
class AsyncSeekable(Protocol):
    """An async file-like object whose read position can be saved and restored.

    ``runtime_checkable`` can't tell a coroutine ``seek`` from a plain one, so
    callers must also check ``iscoroutinefunction(body.seek)``.
    """

    async def seek(self, offset: int, whence: int = 0, /) -> int: ...

    def tell(self) -> int: ...
