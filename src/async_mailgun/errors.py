# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exception hierarchy raised by the Mailgun client.

Every failure of a network operation surfaces as a subclass of
``MailgunError`` so callers can catch a single type:

- ``InvalidJSONError``: the API answered with a JSON object that lacks the
  expected fields (for ``send``, a string ``id``).
- ``InvalidResponseError``: the body could not be decoded as a JSON object.
- ``TransportError``: connection failure, HTTP error status on list
  operations, or a request body that could not be encoded.
- ``UnsupportedOperationError``: the requested capability is not available
  in the running environment.
- ``ImageEncodingError``: an image could not be encoded for attachment.
"""

from __future__ import annotations

from typing import Any


class MailgunError(RuntimeError):
    """Base class for all errors raised by this library."""


class InvalidJSONError(MailgunError):
    """Response was JSON but did not carry the expected fields."""

    def __init__(self, message: str, status: int | None = None, payload: Any = None):
        super().__init__(message)
        self.status = status
        self.payload = payload


class InvalidResponseError(MailgunError):
    """Response body could not be parsed as a JSON object."""

    def __init__(self, message: str, status: int | None = None, body: bytes = b""):
        super().__init__(message)
        self.status = status
        self.body = body


class TransportError(MailgunError):
    """Network, HTTP status or request encoding failure.

    Attributes:
        original: The underlying exception (usually an ``aiohttp.ClientError``).
        status: HTTP status code when the server answered with an error status.
    """

    def __init__(self, message: str, original: BaseException | None = None, status: int | None = None):
        super().__init__(message)
        self.original = original
        self.status = status


class UnsupportedOperationError(MailgunError):
    """The requested operation is not supported here."""


class ImageEncodingError(MailgunError, ValueError):
    """An image could not be encoded into the requested format."""
