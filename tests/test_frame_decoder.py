"""
Unit tests for the incremental JSON frame decoder.
"""

import json

from tcp_log_viewer.errors import DecodeError
from tcp_log_viewer.frame_decoder import FrameDecoder


def frame(message="hi", **extra):
    obj = {"date": "2024-05-01T10:00:00.000Z", "level": "Log", "category": "LogTemp", "message": message}
    obj.update(extra)
    return json.dumps(obj, ensure_ascii=False).encode("utf-8")


class TestFraming:
    """Frames split and joined at arbitrary boundaries."""

    def test_single_frame(self):
        dec = FrameDecoder()
        recs = dec.feed(frame("one"))
        assert [r.message for r in recs] == ["one"]
        assert dec.pending_bytes() == 0

    def test_back_to_back_frames_without_delimiters(self):
        dec = FrameDecoder()
        recs = dec.feed(frame("a") + frame("b") + frame("c"))
        assert [r.message for r in recs] == ["a", "b", "c"]

    def test_byte_by_byte_fragmentation(self):
        dec = FrameDecoder()
        data = frame("x") + b"\n" + frame("y")
        out = []
        for i in range(len(data)):
            out.extend(dec.feed(data[i:i + 1]))
        assert [r.message for r in out] == ["x", "y"]

    def test_split_into_three_chunks(self):
        """Scenario: one frame arriving in three pieces decodes once."""
        data = frame("chunked")
        dec = FrameDecoder()
        assert dec.feed(data[:10]) == []
        assert dec.feed(data[10:25]) == []
        recs = dec.feed(data[25:])
        assert len(recs) == 1
        assert recs[0].message == "chunked"

    def test_braces_inside_strings(self):
        dec = FrameDecoder()
        recs = dec.feed(frame('value {not a frame} and "quoted \\" } brace'))
        assert len(recs) == 1
        assert recs[0].message == 'value {not a frame} and "quoted \\" } brace'

    def test_escaped_backslash_before_quote(self):
        dec = FrameDecoder()
        recs = dec.feed(frame("path C:\\dir\\"))
        assert recs[0].message == "path C:\\dir\\"

    def test_leading_garbage_is_dropped(self):
        dec = FrameDecoder()
        recs = dec.feed(b"garbage\r\n" + frame("ok"))
        assert [r.message for r in recs] == ["ok"]

    def test_unicode_split_inside_character(self):
        data = frame("grüße ✓")
        cut = data.index("✓".encode("utf-8")) + 1
        dec = FrameDecoder()
        assert dec.feed(data[:cut]) == []
        recs = dec.feed(data[cut:])
        assert recs[0].message == "grüße ✓"

    def test_source_is_optional(self):
        dec = FrameDecoder()
        recs = dec.feed(frame("tagged", source="Server"))
        assert recs[0].source == "Server"


class TestErrors:
    """Malformed frames are dropped and decoding continues."""

    def test_invalid_json_then_valid(self):
        errors = []
        dec = FrameDecoder(on_error=errors.append)
        recs = dec.feed(b"{not json}" + frame("after"))
        assert [r.message for r in recs] == ["after"]
        assert len(errors) == 1
        assert isinstance(errors[0], DecodeError)
        assert dec.frames_failed == 1
        assert dec.frames_ok == 1

    def test_missing_required_field(self):
        errors = []
        dec = FrameDecoder(on_error=errors.append)
        bad = json.dumps({"date": "2024-05-01T10:00:00Z", "level": "Log", "message": "no category"}).encode()
        assert dec.feed(bad) == []
        assert "category" in str(errors[0])
        assert errors[0].frame == bad

    def test_non_string_field(self):
        errors = []
        dec = FrameDecoder(on_error=errors.append)
        bad = json.dumps({"date": "x", "level": 3, "category": "c", "message": "m"}).encode()
        assert dec.feed(bad) == []
        assert len(errors) == 1

    def test_incomplete_frame_stays_buffered(self):
        dec = FrameDecoder()
        assert dec.feed(b'{"date": "x", "level"') == []
        assert dec.pending_bytes() > 0

    def test_oversized_frame_is_dropped(self):
        errors = []
        dec = FrameDecoder(on_error=errors.append, max_frame_bytes=64)
        assert dec.feed(b'{"message": "' + b"a" * 100) == []
        assert len(errors) == 1
        assert dec.pending_bytes() == 0
        recs = dec.feed(frame("next"))
        assert [r.message for r in recs] == ["next"]

    def test_reset_discards_partial_frame(self):
        dec = FrameDecoder()
        dec.feed(b'{"date": ')
        dec.reset()
        assert dec.pending_bytes() == 0
        assert [r.message for r in dec.feed(frame("fresh"))] == ["fresh"]
