import httpx
import pytest

from crosspoint_sender import multipart


def test_body_layout():
    payload = multipart.build("file", "note.md", "text/markdown", b"hello")
    b = payload.boundary
    expected = (
        f"--{b}\r\n"
        'Content-Disposition: form-data; name="file"; filename="note.md"\r\n'
        "Content-Type: text/markdown\r\n"
        "\r\n"
        "hello\r\n"
        f"--{b}--\r\n"
    ).encode("utf-8")
    assert payload.body == expected
    assert payload.header_value == f"multipart/form-data; boundary={b}"


def test_boundary_is_random_per_call():
    boundaries = {multipart.build("file", "a", "text/plain", b"x").boundary for _ in range(20)}
    assert len(boundaries) == 20


def test_binary_body_is_embedded_unmodified():
    data = bytes(range(256)) + b"--\r\n--boundary\r\n\r\n-" + b"PK\x03\x04"
    payload = multipart.build("file", "book.epub", "application/epub+zip", data)
    head, _, rest = payload.body.partition(b"\r\n\r\n")
    assert head.startswith(f"--{payload.boundary}\r\n".encode())
    closing = f"\r\n--{payload.boundary}--\r\n".encode()
    assert rest.endswith(closing)
    assert rest[: -len(closing)] == data


def test_filename_quotes_and_newlines_are_escaped():
    payload = multipart.build("file", 'bad"name\r\n.md', "text/markdown", b"")
    header = payload.body.split(b"\r\n")[1]
    assert header == b'Content-Disposition: form-data; name="file"; filename="bad%22name%0D%0A.md"'


@pytest.mark.asyncio
async def test_standard_multipart_reader_recovers_binary_body(device, device_transport):
    data = b"-\r\n-" * 50 + bytes(range(256)) + b"\r\n--\r\n"
    payload = multipart.build("file", "book.epub", "application/epub+zip", data)

    async with httpx.AsyncClient(transport=device_transport, base_url="http://device") as client:
        response = await client.post(
            "/upload",
            params={"path": "/"},
            content=payload.body,
            headers={"Content-Type": payload.header_value},
        )

    assert response.status_code == 200
    [upload] = device.uploads
    assert upload["data"] == data
    assert upload["filename"] == "book.epub"
    assert upload["content_type"] == "application/epub+zip"
