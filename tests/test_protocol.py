"""Tests for the JSON frame codec."""

import json

from highrise_client.protocol import KEEPALIVE_REQUEST, FrameCodec, new_request_id


class TestDecode:
    def test_object_frame(self):
        frame = FrameCodec().decode('{"_type": "ChatEvent", "message": "hi"}')
        assert frame == {"_type": "ChatEvent", "message": "hi"}

    def test_bytes_frame(self):
        frame = FrameCodec().decode(b'{"_type": "ChatEvent"}')
        assert frame["_type"] == "ChatEvent"

    def test_invalid_json_returns_none(self):
        assert FrameCodec().decode("{broken") is None

    def test_non_object_returns_none(self):
        codec = FrameCodec()
        assert codec.decode("[]") is None
        assert codec.decode('"text"') is None
        assert codec.decode("42") is None

    def test_invalid_utf8_returns_none(self):
        assert FrameCodec().decode(b"\xff\xfe\xfd") is None

    def test_oversized_frame_dropped(self):
        codec = FrameCodec(max_size=16)
        assert codec.decode(json.dumps({"_type": "ChatEvent", "pad": "x" * 32})) is None

    def test_frame_at_limit_accepted(self):
        data = '{"_type":"Error"}'
        assert FrameCodec(max_size=len(data)).decode(data) == {"_type": "Error"}


class TestEncode:
    def test_type_and_rid(self):
        out = json.loads(FrameCodec().encode("ChatRequest", {"message": "hey"}))
        assert out["_type"] == "ChatRequest"
        assert out["message"] == "hey"
        assert isinstance(out["rid"], str) and out["rid"]

    def test_explicit_request_id(self):
        out = json.loads(FrameCodec().encode("EmoteRequest", request_id="r-1"))
        assert out == {"_type": "EmoteRequest", "rid": "r-1"}

    def test_type_not_overridden_by_payload(self):
        out = json.loads(FrameCodec().encode("ChatRequest", {"_type": "Other"}))
        assert out["_type"] == "ChatRequest"

    def test_keepalive_frame(self):
        out = json.loads(FrameCodec().keepalive())
        assert out["_type"] == KEEPALIVE_REQUEST == "KeepaliveRequest"
        assert set(out) == {"_type", "rid"}

    def test_request_ids_are_unique(self):
        assert len({new_request_id() for _ in range(100)}) == 100
