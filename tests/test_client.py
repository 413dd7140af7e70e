"""Tests for the MailgunClient library."""

import asyncio
import base64
import email

import aiohttp
import pytest
from aioresponses import aioresponses
from yarl import URL

from async_mailgun.client import MailgunClient, build_multipart, parse_send_response
from async_mailgun.config_loader import MailgunConfig
from async_mailgun.errors import InvalidJSONError, InvalidResponseError, MailgunError, TransportError
from async_mailgun.models import AttachmentPart, Message

API_KEY = "key-3ax6xnjp29jd6fds4gc373sgvjxteol0"
DOMAIN = "samples.mailgun.org"
MESSAGES_URL = f"https://api.mailgun.net/v2/{DOMAIN}/messages"
MEMBERS_URL = f"https://api.mailgun.net/v2/{DOMAIN}/lists/news@{DOMAIN}/members"


class _Sink:
    """Collects the bytes a MultipartWriter writes."""

    def __init__(self):
        self.buffer = bytearray()

    async def write(self, data):
        self.buffer.extend(data)


async def decode_form(writer: aiohttp.MultipartWriter) -> list[tuple]:
    """Serialize a multipart body and parse it back into (name, filename, type, bytes)."""
    sink = _Sink()
    await writer.write(sink)
    raw = b"Content-Type: " + writer.content_type.encode() + b"\r\n\r\n" + bytes(sink.buffer)
    parsed = email.message_from_bytes(raw)
    return [
        (
            part.get_param("name", header="content-disposition"),
            part.get_filename(),
            part.get_content_type(),
            part.get_payload(decode=True),
        )
        for part in parsed.get_payload()
    ]


@pytest.fixture
def client():
    return MailgunClient(API_KEY, DOMAIN)


@pytest.fixture
def message():
    return Message(
        from_addr="Excited User <a@sample.org>",
        to="Jay <jay@x.com>",
        subject="Hi",
        text="Hello ☃",
    )


def sent_requests(m, method="POST", url=MESSAGES_URL):
    return m.requests.get((method, URL(url)), [])


# --- Construction ---

class TestClientSetup:
    """Tests for client construction."""

    def test_authorization_header(self, client):
        expected = base64.b64encode(f"api:{API_KEY}".encode()).decode()
        assert client.authorization_header == f"Basic {expected}"

    def test_base_url(self, client):
        assert client.base_url == f"https://api.mailgun.net/v2/{DOMAIN}"

    def test_custom_api_url(self):
        client = MailgunClient(API_KEY, DOMAIN, api_url="https://api.eu.mailgun.net/v3/")
        assert client.base_url == f"https://api.eu.mailgun.net/v3/{DOMAIN}"

    def test_from_config(self):
        config = MailgunConfig(api_key=API_KEY, domain=DOMAIN, api_url="http://localhost:9000")
        client = MailgunClient.from_config(config)
        assert client.base_url == f"http://localhost:9000/{DOMAIN}"

    @pytest.mark.parametrize("api_key,domain", [("", DOMAIN), (API_KEY, "")])
    def test_missing_credentials(self, api_key, domain):
        with pytest.raises(ValueError):
            MailgunClient(api_key, domain)

    def test_repr_hides_key(self, client):
        assert API_KEY not in repr(client)
        assert DOMAIN in repr(client)


# --- Response parsing ---

class TestParseSendResponse:
    """Tests for mapping response bodies to message ids."""

    def test_id_returned(self):
        body = b'{"id": "<msg-id>", "message": "Queued. Thank you."}'
        assert parse_send_response(200, body) == "<msg-id>"

    def test_missing_id(self):
        with pytest.raises(InvalidJSONError) as exc_info:
            parse_send_response(400, b'{"message": "from parameter is missing"}')
        assert exc_info.value.status == 400
        assert exc_info.value.payload == {"message": "from parameter is missing"}

    def test_non_string_id(self):
        with pytest.raises(InvalidJSONError):
            parse_send_response(200, b'{"id": 42}')

    @pytest.mark.parametrize("body", [b"Forbidden", b"", b"[1, 2]", b"null"])
    def test_not_a_json_object(self, body):
        with pytest.raises(InvalidResponseError) as exc_info:
            parse_send_response(401, body)
        assert exc_info.value.body == body


# --- Multipart body ---

class TestBuildMultipart:
    """Tests for the multipart body encoder."""

    @pytest.mark.asyncio
    async def test_fields_then_files(self):
        writer = build_multipart(
            [("to", "a@x.com"), ("o:tag", "one"), ("o:tag", "two")],
            [AttachmentPart("attachment[0]", "foo.txt", "text/plain", b"hello")],
        )

        form = await decode_form(writer)

        assert form == [
            ("to", None, "text/plain", b"a@x.com"),
            ("o:tag", None, "text/plain", b"one"),
            ("o:tag", None, "text/plain", b"two"),
            ("attachment[0]", "foo.txt", "text/plain", b"hello"),
        ]

    @pytest.mark.asyncio
    async def test_values_utf8(self):
        form = await decode_form(build_multipart([("text", "Hello ☃")], []))
        assert form[0][3] == "Hello ☃".encode("utf-8")

    def test_is_form_data(self):
        writer = build_multipart([("to", "a@x.com")], [])
        assert writer.content_type.startswith("multipart/form-data")


# --- Sending ---

class TestSend:
    """Tests for sending messages."""

    @pytest.mark.asyncio
    async def test_send_success(self, client, message):
        with aioresponses() as m:
            m.post(MESSAGES_URL, status=200, payload={"id": "<msg-id>", "message": "Queued"})

            result = await client.send(message)

            assert result == "<msg-id>"
            requests = sent_requests(m)
            assert len(requests) == 1
            headers = requests[0].kwargs["headers"]
            assert headers["Authorization"] == client.authorization_header
            assert headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_send_posts_expected_fields(self, client, message):
        with aioresponses() as m:
            m.post(MESSAGES_URL, payload={"id": "<msg-id>"})

            await client.send(message)

            form = await decode_form(sent_requests(m)[0].kwargs["data"])

        fields = {name: value.decode("utf-8") for name, _, _, value in form}
        assert fields == {
            "to": "Jay <jay@x.com>",
            "from": "Excited User <a@sample.org>",
            "subject": "Hi",
            "text": "Hello ☃",
            "o:dkim": "no",
            "o:testmode": "no",
            "o:tracking": "no",
            "o:tracking-clicks": "no",
            "o:tracking-opens": "no",
        }

    @pytest.mark.asyncio
    async def test_send_with_attachments(self, client, message):
        message.add_attachment(b"report", "report.csv", "text/csv")
        message.add_attachment(b"notes", "notes.txt", "text/plain")
        message.tags = ["monthly"]

        with aioresponses() as m:
            m.post(MESSAGES_URL, payload={"id": "<msg-id>"})
            await client.send(message)
            form = await decode_form(sent_requests(m)[0].kwargs["data"])

        files = [(name, filename, ctype, data) for name, filename, ctype, data in form if filename]
        assert files == [
            ("attachment[0]", "report.csv", "text/csv", b"report"),
            ("attachment[1]", "notes.txt", "text/plain", b"notes"),
        ]
        assert ("o:tag", None, "text/plain", b"monthly") in form

    @pytest.mark.asyncio
    async def test_send_invalid_json(self, client, message):
        with aioresponses() as m:
            m.post(MESSAGES_URL, status=200, payload={})

            with pytest.raises(InvalidJSONError):
                await client.send(message)

    @pytest.mark.asyncio
    async def test_send_invalid_response(self, client, message):
        with aioresponses() as m:
            m.post(MESSAGES_URL, status=401, body="Forbidden")

            with pytest.raises(InvalidResponseError) as exc_info:
                await client.send(message)

        assert exc_info.value.status == 401
        assert exc_info.value.body == b"Forbidden"

    @pytest.mark.asyncio
    async def test_send_invalid_response_is_logged(self, client, message, caplog):
        with aioresponses() as m:
            m.post(MESSAGES_URL, status=502, body="Bad Gateway")

            with caplog.at_level("WARNING", logger="MailgunClient"):
                with pytest.raises(InvalidResponseError):
                    await client.send(message)

        assert "status=502" in caplog.text
        assert "Bad Gateway" in caplog.text
        assert API_KEY not in caplog.text

    @pytest.mark.asyncio
    async def test_send_error_status_with_json_is_invalid_json(self, client, message):
        with aioresponses() as m:
            m.post(MESSAGES_URL, status=400, payload={"message": "'to' parameter is not a valid address"})

            with pytest.raises(InvalidJSONError) as exc_info:
                await client.send(message)

        assert exc_info.value.status == 400

    @pytest.mark.asyncio
    async def test_send_transport_error(self, client, message):
        error = aiohttp.ClientConnectionError("connection refused")
        with aioresponses() as m:
            m.post(MESSAGES_URL, exception=error)

            with pytest.raises(TransportError) as exc_info:
                await client.send(message)

        assert exc_info.value.original is error
        assert exc_info.value.__cause__ is error
        assert isinstance(exc_info.value, MailgunError)

    @pytest.mark.asyncio
    async def test_send_timeout_is_transport_error(self, client, message):
        with aioresponses() as m:
            m.post(MESSAGES_URL, exception=asyncio.TimeoutError())

            with pytest.raises(TransportError):
                await client.send(message)

    @pytest.mark.asyncio
    async def test_send_does_not_mutate_message(self, client, message):
        message.add_attachment(b"x", "x.bin", "application/octet-stream")
        before = message.model_dump()

        with aioresponses() as m:
            m.post(MESSAGES_URL, payload={"id": "<msg-id>"})
            await client.send(message)

        assert message.model_dump() == before

    @pytest.mark.asyncio
    async def test_concurrent_sends_share_client(self, client, message):
        other = Message(from_addr="a@sample.org", to="b@x.com", subject="Other", text="Body")
        with aioresponses() as m:
            m.post(MESSAGES_URL, payload={"id": "<msg-id>"}, repeat=True)

            results = await asyncio.gather(client.send(message), client.send(other))

            assert results == ["<msg-id>", "<msg-id>"]
            assert len(sent_requests(m)) == 2

    @pytest.mark.asyncio
    async def test_send_message_convenience(self, client):
        with aioresponses() as m:
            m.post(MESSAGES_URL, payload={"id": "<msg-id>"})

            result = await client.send_message(
                "a@x.com,b@y.com", "me@sample.org", "Subject", "Body"
            )

            form = await decode_form(sent_requests(m)[0].kwargs["data"])

        assert result == "<msg-id>"
        fields = {name: value.decode("utf-8") for name, _, _, value in form}
        assert fields["to"] == "a@x.com,b@y.com"
        assert fields["from"] == "me@sample.org"
        assert fields["subject"] == "Subject"
        assert fields["text"] == "Body"


# --- Mailing lists ---

class TestMailingLists:
    """Tests for mailing list member operations."""

    @pytest.mark.asyncio
    async def test_check_subscription(self, client):
        member = {"address": "bob@x.com", "subscribed": True, "name": "Bob", "vars": {}}
        url = f"{MEMBERS_URL}/bob@x.com"
        with aioresponses() as m:
            m.get(url, payload={"member": member})

            result = await client.check_subscription(f"news@{DOMAIN}", "bob@x.com")

            assert len(sent_requests(m, "GET", url)) == 1

        assert result == member

    @pytest.mark.asyncio
    async def test_check_subscription_not_member(self, client):
        url = f"{MEMBERS_URL}/bob@x.com"
        with aioresponses() as m:
            m.get(url, status=404, payload={"message": "Member bob@x.com not found"})

            with pytest.raises(TransportError) as exc_info:
                await client.check_subscription(f"news@{DOMAIN}", "bob@x.com")

        assert exc_info.value.status == 404
        assert isinstance(exc_info.value.original, aiohttp.ClientResponseError)

    @pytest.mark.asyncio
    async def test_check_subscription_without_member(self, client):
        url = f"{MEMBERS_URL}/bob@x.com"
        with aioresponses() as m:
            m.get(url, payload={"message": "ok"})

            with pytest.raises(InvalidJSONError):
                await client.check_subscription(f"news@{DOMAIN}", "bob@x.com")

    @pytest.mark.asyncio
    async def test_subscribe(self, client):
        with aioresponses() as m:
            m.post(MEMBERS_URL, payload={"member": {"address": "bob@x.com"}, "message": "Mailing list member has been created"})

            await client.subscribe(f"news@{DOMAIN}", "bob@x.com", name="Bob", variables={"plan": "pro"})

            request = sent_requests(m, "POST", MEMBERS_URL)[0]

        assert request.kwargs["data"] == {
            "address": "bob@x.com",
            "subscribed": "yes",
            "upsert": "yes",
            "name": "Bob",
            "vars": '{"plan": "pro"}',
        }
        assert request.kwargs["headers"]["Authorization"] == client.authorization_header

    @pytest.mark.asyncio
    async def test_unsubscribe(self, client):
        url = f"{MEMBERS_URL}/bob@x.com"
        with aioresponses() as m:
            m.delete(url, payload={"member": {"address": "bob@x.com"}, "message": "Mailing list member has been deleted"})

            await client.unsubscribe(f"news@{DOMAIN}", "bob@x.com")

            assert len(sent_requests(m, "DELETE", url)) == 1

    @pytest.mark.asyncio
    async def test_list_non_json_response(self, client):
        with aioresponses() as m:
            m.delete(f"{MEMBERS_URL}/bob@x.com", status=200, body="<html>ok</html>")

            with pytest.raises(InvalidResponseError):
                await client.unsubscribe(f"news@{DOMAIN}", "bob@x.com")

    @pytest.mark.asyncio
    async def test_list_connection_error(self, client):
        with aioresponses() as m:
            m.post(MEMBERS_URL, exception=aiohttp.ServerDisconnectedError())

            with pytest.raises(TransportError) as exc_info:
                await client.subscribe(f"news@{DOMAIN}", "bob@x.com")

        assert exc_info.value.status is None
