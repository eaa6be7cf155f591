"""Tests for LSP message framing."""

from __future__ import annotations

import json

import pytest

from lspproxy.transport.lsp.framing import (
    FrameDecoder,
    FrameKind,
    LSPFramingError,
    decode_body,
    encode_message,
    find_content_length,
)
from tests.utils import chunks_of, frame, frame_json


def _messages(frames):
    return [f.message for f in frames if f.kind is FrameKind.MESSAGE]


class TestFindContentLength:
    """Tests for find_content_length."""

    def test_basic_content_length(self) -> None:
        """Parse simple Content-Length header."""
        assert find_content_length(b"Content-Length: 42") == 42

    def test_case_insensitive_name(self) -> None:
        """Header name matches regardless of case."""
        assert find_content_length(b"content-LENGTH: 7") == 7

    def test_with_content_type(self) -> None:
        """Other headers are ignored."""
        header = b"Content-Type: application/vscode-jsonrpc\r\nContent-Length: 100"
        assert find_content_length(header) == 100

    def test_no_whitespace_after_colon(self) -> None:
        """Whitespace after the colon is optional."""
        assert find_content_length(b"Content-Length:9") == 9

    def test_missing_returns_none(self) -> None:
        """Missing Content-Length yields None."""
        assert find_content_length(b"Content-Type: application/json") is None

    def test_non_numeric_returns_none(self) -> None:
        """A non-decimal value is not a Content-Length."""
        assert find_content_length(b"Content-Length: abc") is None

    def test_non_ascii_header_does_not_raise(self) -> None:
        """Non-ASCII bytes in the header block are tolerated."""
        assert find_content_length(b"X-Name: \xff\xfe\r\nContent-Length: 3") == 3


class TestFrameDecoder:
    """Tests for incremental frame decoding."""

    def test_single_message(self) -> None:
        """A complete frame yields one message."""
        decoder = FrameDecoder()
        frames = decoder.feed(frame_json({"jsonrpc": "2.0", "id": 1, "method": "test"}))

        assert len(frames) == 1
        assert frames[0].kind is FrameKind.MESSAGE
        assert frames[0].message == {"jsonrpc": "2.0", "id": 1, "method": "test"}
        assert decoder.pending == 0

    def test_raw_is_original_bytes(self) -> None:
        """Decoded frames keep the exact wire bytes."""
        data = frame(b'{ "id" : 1 }')
        [decoded] = FrameDecoder().feed(data)

        assert decoded.raw == data
        assert decoded.body == b'{ "id" : 1 }'

    def test_multiple_messages_in_one_chunk(self) -> None:
        """All complete frames in a chunk are drained in order."""
        data = b"".join(frame_json({"id": i}) for i in range(5))

        frames = FrameDecoder().feed(data)

        assert _messages(frames) == [{"id": i} for i in range(5)]

    def test_partial_header_waits(self) -> None:
        """Without a separator nothing is emitted."""
        decoder = FrameDecoder()

        assert decoder.feed(b"Content-Length: 2\r\n") == []
        assert decoder.pending == len(b"Content-Length: 2\r\n")

    def test_partial_body_waits(self) -> None:
        """A truncated body is buffered until complete."""
        decoder = FrameDecoder()
        data = frame_json({"method": "initialized", "params": {}})

        assert decoder.feed(data[:-3]) == []
        assert decoder.pending == len(data) - 3

        frames = decoder.feed(data[-3:])
        assert _messages(frames) == [{"method": "initialized", "params": {}}]
        assert decoder.pending == 0

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 64])
    def test_chunk_boundaries_do_not_matter(self, size: int) -> None:
        """Splitting the stream anywhere yields the same messages."""
        messages = [
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"rootUri": "file:///w"}},
            {"jsonrpc": "2.0", "method": "textDocument/didOpen", "params": {"text": "héllo 世界"}},
            {"jsonrpc": "2.0", "id": 2, "result": None},
        ]
        data = b"".join(frame_json(m) for m in messages)

        whole = _messages(FrameDecoder().feed(data))

        decoder = FrameDecoder()
        split = []
        for chunk in chunks_of(data, size):
            split.extend(_messages(decoder.feed(chunk)))

        assert whole == messages
        assert split == whole

    def test_trailing_bytes_stay_pending(self) -> None:
        """Bytes after the last complete frame remain buffered."""
        decoder = FrameDecoder()
        frames = decoder.feed(frame_json({"id": 1}) + b"Content-Len")

        assert len(frames) == 1
        assert decoder.pending == len(b"Content-Len")

    def test_content_type_header_accepted(self) -> None:
        """Optional Content-Type header is accepted."""
        body = b'{"id":1}'
        data = (
            f"Content-Length: {len(body)}\r\n"
            f"Content-Type: application/vscode-jsonrpc; charset=utf-8\r\n"
            f"\r\n"
        ).encode() + body

        assert _messages(FrameDecoder().feed(data)) == [{"id": 1}]

    def test_length_counts_bytes_not_characters(self) -> None:
        """Multi-byte UTF-8 bodies use their byte length."""
        body = '{"message":"Hello, 世界!"}'.encode("utf-8")

        frames = FrameDecoder().feed(frame(body))

        assert _messages(frames) == [{"message": "Hello, 世界!"}]

    def test_non_object_json_is_a_message(self) -> None:
        """Any JSON value is accepted, not only objects."""
        frames = FrameDecoder().feed(frame(b"[1, 2, 3]") + frame(b"null"))

        assert [f.kind for f in frames] == [FrameKind.MESSAGE, FrameKind.MESSAGE]
        assert [f.message for f in frames] == [[1, 2, 3], None]


class TestMalformedInput:
    """Decoding never fails; bad input is passed through."""

    def test_missing_content_length_is_forwarded(self) -> None:
        """A header block without Content-Length is emitted verbatim."""
        bad = b"X-Custom: value\r\n\r\n"

        frames = FrameDecoder().feed(bad)

        assert len(frames) == 1
        assert frames[0].kind is FrameKind.MALFORMED
        assert frames[0].raw == bad
        assert frames[0].body is None

    def test_resynchronizes_after_malformed_header(self) -> None:
        """Parsing resumes with the bytes after the bad separator."""
        bad = b"Content-Length: nope\r\n\r\n"
        good = frame_json({"id": 9})

        frames = FrameDecoder().feed(bad + good)

        assert [f.kind for f in frames] == [FrameKind.MALFORMED, FrameKind.MESSAGE]
        assert frames[0].raw == bad
        assert frames[1].message == {"id": 9}

    def test_invalid_json_is_unparseable(self) -> None:
        """A body that is not JSON keeps its original bytes."""
        data = frame(b"not valid json")

        [decoded] = FrameDecoder().feed(data)

        assert decoded.kind is FrameKind.UNPARSEABLE
        assert decoded.raw == data
        assert decoded.body_text == "not valid json"

    def test_invalid_utf8_is_unparseable(self) -> None:
        """Invalid UTF-8 is reported with replacement characters."""
        data = frame(b'{"a":"\xff"}')

        [decoded] = FrameDecoder().feed(data)

        assert decoded.kind is FrameKind.UNPARSEABLE
        assert decoded.raw == data
        assert "�" in decoded.body_text

    @pytest.mark.parametrize("body", [b"NaN", b'{"x": Infinity}', b"-Infinity"])
    def test_non_standard_constants_are_unparseable(self, body: bytes) -> None:
        """NaN and Infinity are not JSON."""
        [decoded] = FrameDecoder().feed(frame(body))

        assert decoded.kind is FrameKind.UNPARSEABLE

    def test_empty_body_is_unparseable(self) -> None:
        """Content-Length: 0 resolves to an unparseable frame."""
        [decoded] = FrameDecoder().feed(b"Content-Length: 0\r\n\r\n")

        assert decoded.kind is FrameKind.UNPARSEABLE
        assert decoded.raw == b"Content-Length: 0\r\n\r\n"

    def test_unparseable_frame_does_not_stop_stream(self) -> None:
        """Frames after an unparseable one still decode."""
        frames = FrameDecoder().feed(frame(b"{oops") + frame_json({"id": 2}))

        assert [f.kind for f in frames] == [FrameKind.UNPARSEABLE, FrameKind.MESSAGE]


class TestDecodeBody:
    """Tests for decode_body."""

    def test_decodes_utf8_json(self) -> None:
        assert decode_body('{"k":"é"}'.encode()) == {"k": "é"}

    def test_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            decode_body(b"{")


class TestEncodeMessage:
    """Tests for encode_message."""

    def test_header_and_compact_body(self) -> None:
        """Frames use a fresh Content-Length and compact JSON."""
        data = encode_message({"jsonrpc": "2.0", "id": 1, "result": None})

        assert data == b'Content-Length: 38\r\n\r\n{"jsonrpc":"2.0","id":1,"result":null}'

    def test_unicode_length_in_bytes(self) -> None:
        """Non-ASCII is written as UTF-8 and counted in bytes."""
        msg = {"text": "世界"}
        data = encode_message(msg)

        header, body = data.split(b"\r\n\r\n", 1)
        assert body == '{"text":"世界"}'.encode("utf-8")
        assert header == f"Content-Length: {len(body)}".encode()

    def test_round_trip(self) -> None:
        """Decoding an encoded message gives back an equal value."""
        msg = {
            "jsonrpc": "2.0",
            "id": "abc",
            "params": {"list": [1, 2.5, True, None], "nested": {"s": "é\n\"q\""}},
        }

        [decoded] = FrameDecoder().feed(encode_message(msg))

        assert decoded.message == msg

    def test_lone_surrogate_escaped(self) -> None:
        """Only the surrogate is escaped; other text stays UTF-8."""
        data = encode_message({"id": "\ud800", "text": "é"})

        body = data.split(b"\r\n\r\n", 1)[1]
        assert body == '{"id":"\\ud800","text":"é"}'.encode("utf-8")
        assert FrameDecoder().feed(data)[0].message == {"id": "\ud800", "text": "é"}

    def test_unserializable_raises(self) -> None:
        """Values JSON cannot represent raise LSPFramingError."""
        with pytest.raises(LSPFramingError, match="cannot be serialized"):
            encode_message({"bad": {1, 2}})

    def test_nan_raises(self) -> None:
        """NaN is refused rather than written as invalid JSON."""
        with pytest.raises(LSPFramingError):
            encode_message({"n": float("nan")})

    def test_body_is_valid_json(self) -> None:
        data = encode_message([1, "two", {"three": 3}])
        body = data.split(b"\r\n\r\n", 1)[1]
        assert json.loads(body) == [1, "two", {"three": 3}]
