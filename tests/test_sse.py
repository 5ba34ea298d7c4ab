"""Test event-stream reassembly and delta decoding."""

import json

import pytest

from memodesk.llm.sse import (
    Delta,
    LineReassembler,
    decode_delta,
    iter_lines,
    parse_event_line,
)


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


def event(content=None, reasoning=None) -> str:
    delta = {}
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning_content"] = reasoning
    return "data: " + json.dumps({"choices": [{"delta": delta}]})


class TestLineReassembler:
    """Tests for LineReassembler."""

    def test_single_chunk_many_lines(self):
        reassembler = LineReassembler()
        assert reassembler.feed(b"one\ntwo\nthree\n") == ["one", "two", "three"]
        assert reassembler.flush() is None

    def test_no_newline_emits_nothing_until_flush(self):
        reassembler = LineReassembler()
        for chunk in (b"data: ", b"{\"a\"", b": 1}"):
            assert reassembler.feed(chunk) == []
        assert reassembler.pending == "data: {\"a\": 1}"
        assert reassembler.flush() == "data: {\"a\": 1}"
        assert reassembler.pending == ""

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 64])
    def test_lines_split_across_chunks(self, size):
        segments = ["data: alpha", "", "data: beta gamma", ": keep-alive", "data: [DONE]"]
        stream = "".join(s + "\n" for s in segments).encode()

        reassembler = LineReassembler()
        lines = []
        for chunk in split_every(stream, size):
            lines.extend(reassembler.feed(chunk))

        assert lines == segments
        assert reassembler.flush() is None

    def test_reconstructs_stream(self):
        stream = "a\nbb\n\nccc\ndd".encode()
        reassembler = LineReassembler()
        lines = []
        for chunk in split_every(stream, 3):
            lines.extend(reassembler.feed(chunk))
        rebuilt = "".join(line + "\n" for line in lines) + reassembler.pending
        assert rebuilt == stream.decode()

    def test_multibyte_character_split_across_chunks(self):
        data = "héllo → wörld\n".encode("utf-8")
        reassembler = LineReassembler()
        lines = []
        for chunk in split_every(data, 1):
            lines.extend(reassembler.feed(chunk))
        assert lines == ["héllo → wörld"]

    def test_invalid_bytes_are_replaced(self):
        reassembler = LineReassembler()
        assert reassembler.feed(b"ab\xffcd\n") == ["ab�cd"]

    def test_truncated_character_at_end_of_stream(self):
        reassembler = LineReassembler()
        reassembler.feed(b"x\xc3")
        assert reassembler.flush() == "x�"

    def test_carriage_returns_are_kept(self):
        reassembler = LineReassembler()
        assert reassembler.feed(b"data: 1\r\n\r\n") == ["data: 1\r", "\r"]

    def test_iter_lines_yields_tail(self):
        chunks = [b"one\ntw", b"o\nthr", b"ee"]
        assert list(iter_lines(chunks)) == ["one", "two", "three"]


class TestParseEventLine:
    """Tests for parse_event_line."""

    def test_data_line(self):
        assert parse_event_line('data: {"x": 1}') == '{"x": 1}'

    def test_surrounding_whitespace_is_trimmed(self):
        assert parse_event_line('  data: [DONE]\r') == "[DONE]"

    @pytest.mark.parametrize("line", ["", "   ", ": ping", "event: message", "data:{}", "id: 4"])
    def test_non_data_lines_are_ignored(self, line):
        assert parse_event_line(line) is None


class TestDecodeDelta:
    """Tests for decode_delta."""

    def test_content(self):
        payload = event("Hel")[len("data: "):]
        assert decode_delta(payload) == Delta(content="Hel")

    def test_reasoning_content(self):
        payload = event(reasoning="thinking")[len("data: "):]
        assert decode_delta(payload) == Delta(content="", reasoning="thinking")

    def test_done_sentinel(self):
        assert decode_delta("[DONE]") is None

    @pytest.mark.parametrize("payload", [
        "not-json",
        "{",
        "[]",
        "null",
        '{"choices": []}',
        '{"choices": [{}]}',
        '{"choices": [{"delta": {}}]}',
        '{"choices": [{"delta": {"content": ""}}]}',
        '{"choices": [{"delta": {"content": null}}]}',
        '{"choices": [{"delta": {"content": 42}}]}',
        '{"choices": [{"delta": "text"}]}',
        '{"choices": "nope"}',
    ])
    def test_payloads_without_text(self, payload):
        assert decode_delta(payload) is None
