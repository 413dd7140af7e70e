# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Asynchronous client library for the Mailgun email API.

This package lets an application send transactional email and manage
mailing-list subscriptions through Mailgun:

- ``Message`` model with recipients, bodies, delivery options and attachments
- Pillow-based image attachments (PNG, JPEG, BMP, GIF, TIFF, JPEG 2000)
- ``MailgunClient`` posting multipart/form-data requests with aiohttp
- Configuration from INI files or ``MAILGUN_*`` environment variables

Example:
    Sending a message::

        from async_mailgun import MailgunClient, Message

        mailgun = MailgunClient(api_key="key-xxx", domain="samples.mailgun.org")
        msg = Message(from_addr="Excited User <someone@sample.org>",
                      to="jay@example.com", subject="Hi", text="Hello ☃")
        message_id = await mailgun.send(msg)
"""

from async_mailgun.client import MailgunClient
from async_mailgun.config_loader import DEFAULT_API_URL, MailgunConfig, load_config
from async_mailgun.errors import (
    ImageEncodingError,
    InvalidJSONError,
    InvalidResponseError,
    MailgunError,
    TransportError,
    UnsupportedOperationError,
)
from async_mailgun.images import ImageFormat, supported_formats
from async_mailgun.models import Attachment, AttachmentPart, ClickTracking, Message

__all__ = [
    "DEFAULT_API_URL",
    "Attachment",
    "AttachmentPart",
    "ClickTracking",
    "ImageEncodingError",
    "ImageFormat",
    "InvalidJSONError",
    "InvalidResponseError",
    "MailgunClient",
    "MailgunConfig",
    "MailgunError",
    "Message",
    "TransportError",
    "UnsupportedOperationError",
    "load_config",
    "supported_formats",
]
