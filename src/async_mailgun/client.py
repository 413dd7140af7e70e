# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Asynchronous client for the Mailgun HTTP API.

The client turns a ``Message`` into a multipart/form-data POST against the
``/messages`` endpoint and resolves to the id Mailgun assigned. It also
covers the mailing-list member endpoints.

Usage:
    >>> from async_mailgun import MailgunClient, Message
    >>> mailgun = MailgunClient("key-3ax6xnjp29jd6fds4gc373sgvjxteol0", "samples.mailgun.org")
    >>> await mailgun.send_message(
    ...     "Jay Baird <jay.baird@rackspace.com>",
    ...     "Excited User <someone@sample.org>",
    ...     "Mailgun is awesome!",
    ...     "A unicode snowman for you! ☃",
    ... )
    '<20130618211447.62592.94341@samples.mailgun.org>'

Every call opens its own HTTP session, so one client can be shared by any
number of concurrent tasks. Failures are raised as ``MailgunError``
subclasses; nothing is retried.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any
from urllib.parse import quote

import aiohttp

from async_mailgun.config_loader import DEFAULT_API_URL, MailgunConfig
from async_mailgun.errors import InvalidJSONError, InvalidResponseError, TransportError
from async_mailgun.logger import get_logger
from async_mailgun.models import AttachmentPart, Message

logger = get_logger("MailgunClient")


def build_multipart(
    fields: list[tuple[str, str]],
    parts: list[AttachmentPart],
) -> aiohttp.MultipartWriter:
    """Build the multipart/form-data body for a message.

    Text fields come first, encoded as UTF-8, followed by the file parts.

    Args:
        fields: (name, value) pairs, repeated names allowed.
        parts: Attachment parts in submission order.

    Returns:
        A form-data ``aiohttp.MultipartWriter`` ready to be posted.
    """
    writer = aiohttp.MultipartWriter("form-data")
    for name, value in fields:
        payload = writer.append(value)
        payload.set_content_disposition("form-data", name=name, quote_fields=False)
    for part in parts:
        payload = writer.append(part.data, {"Content-Type": part.mime_type})
        payload.set_content_disposition(
            "form-data", name=part.field_name, filename=part.filename, quote_fields=False
        )
    return writer


def parse_send_response(status: int, body: bytes) -> str:
    """Extract the message id from a ``/messages`` response body.

    Args:
        status: HTTP status code, kept for error reporting.
        body: Raw response body.

    Returns:
        The message id assigned by Mailgun.

    Raises:
        InvalidResponseError: If the body is not a JSON object.
        InvalidJSONError: If the object has no string ``id``.
    """
    try:
        data = json.loads(body) if body.strip() else None
    except ValueError:
        data = None
    if not isinstance(data, dict):
        raise InvalidResponseError(
            f"Mailgun returned a non-JSON response (status={status})", status=status, body=body
        )
    message_id = data.get("id")
    if not isinstance(message_id, str):
        raise InvalidJSONError(
            f"Mailgun response has no message id (status={status}, message={data.get('message')!r})",
            status=status,
            payload=data,
        )
    return message_id


def _preview(body: bytes) -> str:
    return body[:500].decode("utf-8", errors="replace") if body else "<empty>"


class MailgunClient:
    """Client for sending messages through a Mailgun domain.

    Attributes:
        domain: Sending domain.
        base_url: API URL scoped to the domain.
        authorization_header: Precomputed HTTP Basic credential for ``api:<key>``.

    Example:
        >>> mailgun = MailgunClient("key-xxx", "samples.mailgun.org")
        >>> msg = Message(from_addr="me@samples.mailgun.org", to="you@example.com",
        ...               subject="Hi", text="Hello")
        >>> msg.add_attachment(b"hello", "hello.txt", "text/plain")
        >>> message_id = await mailgun.send(msg)
    """

    def __init__(self, api_key: str, domain: str, api_url: str = DEFAULT_API_URL):
        """Initialize the client.

        Args:
            api_key: Private Mailgun API key.
            domain: Sending domain.
            api_url: API base URL without the domain part.

        Raises:
            ValueError: If ``api_key`` or ``domain`` is empty.
        """
        if not api_key:
            raise ValueError("api_key is required")
        if not domain:
            raise ValueError("domain is required")
        self._api_key = api_key
        self.domain = domain
        self.api_url = api_url.rstrip("/")
        self.base_url = f"{self.api_url}/{domain}"
        self.authorization_header = aiohttp.BasicAuth("api", api_key).encode()

    @classmethod
    def from_config(cls, config: MailgunConfig) -> MailgunClient:
        """Create a client from loaded configuration."""
        return cls(config.api_key, config.domain, api_url=config.api_url)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": self.authorization_header,
            "Accept": "application/json",
        }

    # --- Sending ---

    async def send(self, message: Message) -> str:
        """Send a previously built message.

        The message is serialized before any I/O happens; later changes to it
        do not affect the request in flight.

        Args:
            message: Message to send.

        Returns:
            The message id assigned by Mailgun.

        Raises:
            TransportError: On connection failure or if the body cannot be encoded.
            InvalidResponseError: If the response is not a JSON object.
            InvalidJSONError: If the response carries no message id.
        """
        fields = message.form_fields()
        parts = message.attachment_parts()
        try:
            form = build_multipart(fields, parts)
        except (TypeError, ValueError, LookupError) as exc:
            raise TransportError(f"Cannot encode multipart request: {exc}", original=exc) from exc

        url = f"{self.base_url}/messages"
        logger.debug(
            "Posting message to %s (fields=%d, attachments=%d)", url, len(fields), len(parts)
        )
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(url, data=form, headers=self._headers()) as response:
                    status = response.status
                    body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Mailgun request to %s failed: %r", url, exc)
            raise TransportError(f"Mailgun request failed: {exc!r}", original=exc) from exc

        try:
            message_id = parse_send_response(status, body)
        except (InvalidJSONError, InvalidResponseError):
            logger.warning(
                "Mailgun rejected message (status=%d, body=%s)", status, _preview(body)
            )
            raise
        logger.info("Mailgun accepted message %s", message_id)
        return message_id

    async def send_message(self, to: str, from_addr: str, subject: str, body: str) -> str:
        """Send a plain text message.

        Args:
            to: Recipient(s), comma separated.
            from_addr: Sender address.
            subject: Subject line.
            body: Plain text body.

        Returns:
            The message id assigned by Mailgun.
        """
        message = Message(from_addr=from_addr, to=to, subject=subject, text=body)
        return await self.send(message)

    # --- Mailing list members ---

    def _member_path(self, list_name: str, email: str | None = None) -> str:
        path = f"{self.base_url}/lists/{quote(list_name, safe='@')}/members"
        if email is not None:
            path = f"{path}/{quote(email, safe='@')}"
        return path

    async def _request(
        self, method: str, url: str, data: dict[str, str] | None = None
    ) -> dict[str, Any]:
        """Issue a request against a list endpoint and decode its JSON object."""
        logger.debug("%s %s", method, url)
        body = b""
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method, url, data=data, headers=self._headers()
                ) as response:
                    status = response.status
                    body = await response.read()
                    response.raise_for_status()
        except aiohttp.ClientResponseError as exc:
            logger.warning("Mailgun %s %s returned %d (body=%s)", method, url, exc.status, _preview(body))
            raise TransportError(
                f"Mailgun returned HTTP {exc.status}", original=exc, status=exc.status
            ) from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Mailgun request to %s failed: %r", url, exc)
            raise TransportError(f"Mailgun request failed: {exc!r}", original=exc) from exc

        try:
            payload = json.loads(body) if body.strip() else None
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise InvalidResponseError(
                f"Mailgun returned a non-JSON response (status={status})", status=status, body=body
            )
        return payload

    async def check_subscription(self, list_name: str, email: str) -> dict[str, Any]:
        """Return the member record of ``email`` in ``list_name``.

        Raises:
            TransportError: With ``status == 404`` if the address is not a member.
            InvalidJSONError: If the response has no ``member`` object.
        """
        payload = await self._request("GET", self._member_path(list_name, email))
        member = payload.get("member")
        if not isinstance(member, dict):
            raise InvalidJSONError("Mailgun response has no member record", payload=payload)
        return member

    async def subscribe(
        self,
        list_name: str,
        email: str,
        name: str | None = None,
        variables: dict[str, Any] | None = None,
    ) -> None:
        """Subscribe ``email`` to ``list_name``, updating an existing member.

        Args:
            list_name: Mailing list address.
            email: Address to subscribe.
            name: Optional display name.
            variables: Optional custom member data, sent as JSON.
        """
        data = {"address": email, "subscribed": "yes", "upsert": "yes"}
        if name:
            data["name"] = name
        if variables:
            data["vars"] = json.dumps(variables)
        await self._request("POST", self._member_path(list_name), data=data)
        logger.info("Subscribed %s to %s", email, list_name)

    async def unsubscribe(self, list_name: str, email: str) -> None:
        """Remove ``email`` from ``list_name``.

        Raises:
            TransportError: With ``status == 404`` if the address is not a member.
        """
        await self._request("DELETE", self._member_path(list_name, email))
        logger.info("Unsubscribed %s from %s", email, list_name)

    def __repr__(self) -> str:
        return f"<MailgunClient domain='{self.domain}' url='{self.api_url}'>"
