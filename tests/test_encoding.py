"""Tests for protobuf / JSON encoding of data points."""

import json

import pytest

from conftest import make_point
from emma_ingestor import encoding
from emma_ingestor.encoding import FORMAT_JSON, FORMAT_PROTOBUF, DataPointMessage, decode, encode
from emma_ingestor.errors import PublishError


class TestProtobuf:

    def test_round_trip(self, point):
        encoded = encode(point)

        assert encoded.format == FORMAT_PROTOBUF
        assert decode(encoded.payload, FORMAT_PROTOBUF) == point

    def test_round_trip_extreme_values(self):
        point = make_point(value=-1.2345678901234567e-300, lat=-90.0, lon=180.0, epoch_ms=2**62)
        assert decode(encode(point).payload) == point

    def test_wire_field_numbers(self, point):
        message = DataPointMessage.FromString(encoding.encode_protobuf(point))
        numbers = {f.name: f.number for f in message.DESCRIPTOR.fields}

        assert numbers == {
            "source": 1, "epoch_ms": 2, "value": 3, "lat": 4, "lon": 5,
            "variable": 6, "units": 7, "resolution": 8, "uuid": 9, "category": 10,
        }
        assert message.DESCRIPTOR.full_name == "emma.v1.DataPoint"

    def test_invalid_payload(self):
        with pytest.raises(ValueError):
            decode(b"\xff\xff\xff", FORMAT_PROTOBUF)


class TestJsonFallback:

    def test_falls_back_when_protobuf_fails(self, point, monkeypatch, caplog):
        def _broken(p):
            raise ValueError("cannot marshal")

        monkeypatch.setattr(encoding, "encode_protobuf", _broken)

        encoded = encode(point)

        assert encoded.format == FORMAT_JSON
        assert json.loads(encoded.payload)["source"] == point.source
        assert decode(encoded.payload, FORMAT_JSON) == point
        assert "falling back to JSON" in caplog.text

    def test_both_encodings_fail(self, point, monkeypatch):
        def _broken(p):
            raise TypeError("nope")

        monkeypatch.setattr(encoding, "encode_protobuf", _broken)
        monkeypatch.setattr(encoding, "encode_json", _broken)

        with pytest.raises(PublishError, match="failed to marshal point to JSON"):
            encode(point)

    def test_unknown_format(self, point):
        with pytest.raises(ValueError, match="unknown encoding format"):
            decode(b"{}", "avro")
