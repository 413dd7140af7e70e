# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic models describing an outbound Mailgun message.

The ``Message`` model holds recipients, bodies, delivery options and
attachments, and knows how to flatten itself into the form fields and file
parts the Mailgun ``/messages`` endpoint expects. It has no network
awareness; ``MailgunClient`` does the HTTP side.

Models:
    - ClickTracking: per-message click tracking mode
    - Attachment: MIME type and content of one attachment
    - AttachmentPart: one file part of the multipart request
    - Message: the outbound email
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from async_mailgun.images import ImageFormat, encoder_for

if TYPE_CHECKING:
    from PIL import Image


class ClickTracking(str, Enum):
    """Click tracking modes accepted by ``o:tracking-clicks``.

    Attributes:
        HTML_CLICKS_ONLY: Rewrite links in the HTML part only.
        ALL_CLICKS: Rewrite links in both HTML and text parts.
    """

    HTML_CLICKS_ONLY = "htmlonly"
    ALL_CLICKS = "yes"


class Attachment(BaseModel):
    """A named attachment's MIME type and raw content."""

    model_config = ConfigDict(frozen=True)

    mime_type: str
    data: bytes


@dataclass(frozen=True)
class AttachmentPart:
    """One file part of the multipart request.

    Attributes:
        field_name: Positional form field name, ``attachment[<index>]``.
        filename: Attachment name as given by the caller.
        mime_type: Content type of the part.
        data: Raw bytes.
        inline: True for parts taken from ``inline_attachments``.
    """

    field_name: str
    filename: str
    mime_type: str
    data: bytes
    inline: bool = False


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


class Message(BaseModel):
    """Outbound email message.

    ``to``, ``cc`` and ``bcc`` accept either a list of addresses or a single
    comma-separated string. ``from_addr`` (alias ``from``) and ``subject``
    cannot be changed after construction.

    Example:
        >>> msg = Message(from_addr="Me <me@example.com>", to="a@x.com,b@y.com",
        ...               subject="Hi", text="Hello")
        >>> msg.to
        ['a@x.com', 'b@y.com']
    """

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        validate_assignment=True,
    )

    from_addr: Annotated[
        str,
        Field(alias="from", frozen=True, description="Address for the From header")
    ]
    to: Annotated[
        list[str],
        Field(description="Recipient addresses, e.g. 'Bob <bob@host.com>'")
    ]
    subject: Annotated[
        str,
        Field(frozen=True, description="Message subject")
    ]
    text: Annotated[
        str,
        Field(description="Plain text body")
    ]
    cc: Annotated[
        list[str],
        Field(default_factory=list, description="CC recipient addresses")
    ]
    bcc: Annotated[
        list[str],
        Field(default_factory=list, description="BCC recipient addresses")
    ]
    html: Annotated[
        str | None,
        Field(default=None, description="HTML body")
    ]
    campaign: Annotated[
        str | None,
        Field(default=None, description="ID of the campaign the message belongs to")
    ]
    tags: Annotated[
        list[str],
        Field(default_factory=list, description="Tags sent as repeated o:tag fields")
    ]
    headers: Annotated[
        dict[str, str],
        Field(default_factory=dict, description="Custom MIME headers, sent as h:X-<name>")
    ]
    variables: Annotated[
        dict[str, str],
        Field(default_factory=dict, description="Custom data, sent as v:<name>")
    ]
    attachments: Annotated[
        dict[str, Attachment],
        Field(default_factory=dict, description="Attachments keyed by file name")
    ]
    inline_attachments: Annotated[
        dict[str, Attachment],
        Field(default_factory=dict, description="Inline attachments keyed by file name")
    ]
    dkim: Annotated[
        bool,
        Field(default=False, description="Enable DKIM signature for this message")
    ]
    testing: Annotated[
        bool,
        Field(default=False, description="Send in test mode")
    ]
    tracking: Annotated[
        bool,
        Field(default=False, description="Enable tracking for this message")
    ]
    track_opens: Annotated[
        bool,
        Field(default=False, description="Enable opens tracking for this message")
    ]
    track_clicks: Annotated[
        ClickTracking | None,
        Field(default=None, description="Clicks tracking mode (unset means 'no')")
    ]
    deliver_at: Annotated[
        datetime | None,
        Field(default=None, description="Scheduled delivery time")
    ]

    @field_validator("to", mode="before")
    @classmethod
    def split_recipients(cls, v: Any) -> Any:
        """Split a comma-separated recipient string. Never yields an empty list."""
        if isinstance(v, str):
            return v.split(",")
        if isinstance(v, (list, tuple)) and not v:
            return [""]
        return v

    @field_validator("cc", "bcc", mode="before")
    @classmethod
    def split_copy_recipients(cls, v: Any) -> Any:
        """Split a comma-separated cc/bcc string; an empty string means nobody."""
        if isinstance(v, str):
            return v.split(",") if v else []
        return v

    def to_parameter_map(self) -> dict[str, str]:
        """Flatten the message into Mailgun form parameters.

        Optional fields are omitted when empty or unset. Option flags are
        always present as "yes"/"no". Custom headers become ``h:X-<name>``
        and variables ``v:<name>``; on a key clash the later entry wins, in
        this order: required fields, optional fields, option flags,
        headers, variables.
        """
        params: dict[str, str] = {
            "to": ",".join(self.to),
            "from": self.from_addr,
            "subject": self.subject,
            "text": self.text,
        }

        if self.cc:
            params["cc"] = ",".join(self.cc)
        if self.bcc:
            params["bcc"] = ",".join(self.bcc)
        if self.html is not None:
            params["html"] = self.html
        if self.campaign is not None:
            params["o:campaign"] = self.campaign
        if self.deliver_at is not None:
            params["o:deliverytime"] = self.delivery_time()

        params["o:dkim"] = _yes_no(self.dkim)
        params["o:testmode"] = _yes_no(self.testing)
        params["o:tracking"] = _yes_no(self.tracking)
        params["o:tracking-clicks"] = self.track_clicks.value if self.track_clicks else "no"
        params["o:tracking-opens"] = _yes_no(self.track_opens)

        for name, value in self.headers.items():
            params[f"h:X-{name}"] = value
        for name, value in self.variables.items():
            params[f"v:{name}"] = value

        return params

    def delivery_time(self) -> str | None:
        """Format ``deliver_at`` as an RFC-2822 date; naive values are taken as UTC."""
        if self.deliver_at is None:
            return None
        when = self.deliver_at
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return format_datetime(when)

    def form_fields(self) -> list[tuple[str, str]]:
        """Return every text form field, tags included, in submission order."""
        fields = list(self.to_parameter_map().items())
        fields.extend(("o:tag", tag) for tag in self.tags)
        return fields

    def attachment_parts(self) -> list[AttachmentPart]:
        """Return file parts: regular attachments first, then inline ones.

        Indexes in the ``attachment[<index>]`` field names restart at 0 for
        the inline group.
        """
        parts: list[AttachmentPart] = []
        for inline, group in ((False, self.attachments), (True, self.inline_attachments)):
            for index, (name, attachment) in enumerate(group.items()):
                parts.append(AttachmentPart(
                    field_name=f"attachment[{index}]",
                    filename=name,
                    mime_type=attachment.mime_type,
                    data=attachment.data,
                    inline=inline,
                ))
        return parts

    def add_attachment(self, data: bytes, name: str, mime_type: str) -> None:
        """Attach raw bytes, replacing any attachment with the same name."""
        self.attachments[name] = Attachment(mime_type=mime_type, data=data)

    def add_image(
        self,
        image: Image.Image,
        name: str,
        image_format: ImageFormat | str,
        inline: bool = False,
    ) -> str:
        """Encode a Pillow image and attach it.

        The format's extension is appended to ``name`` unless already
        present.

        Args:
            image: Decoded image to attach.
            name: Attachment name.
            image_format: Target raster format.
            inline: Store in ``inline_attachments`` instead of ``attachments``.

        Returns:
            The file name the image was stored under.

        Raises:
            UnsupportedOperationError: If the format is unknown or its codec is unavailable.
            ImageEncodingError: If the image cannot be encoded.
        """
        encoder = encoder_for(image_format)
        data = encoder.encode(image)
        suffix = f".{encoder.file_extension}"
        filename = name if name.endswith(suffix) else name + suffix
        if inline:
            self.inline_attachments[filename] = Attachment(mime_type=encoder.mime_type, data=data)
        else:
            self.add_attachment(data, filename, encoder.mime_type)
        return filename
