"""Wire encoding for data points: protobuf, with a JSON fallback."""

import json
import logging
from dataclasses import dataclass

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError, EncodeError

from .errors import PublishError
from .models import DataPoint

logger = logging.getLogger(__name__)

FORMAT_PROTOBUF = "protobuf"
FORMAT_JSON = "json"

_F = descriptor_pb2.FieldDescriptorProto

# emma.v1.DataPoint, field numbers are part of the wire contract
_SCHEMA = [
    ("source", _F.TYPE_STRING),
    ("epoch_ms", _F.TYPE_INT64),
    ("value", _F.TYPE_DOUBLE),
    ("lat", _F.TYPE_DOUBLE),
    ("lon", _F.TYPE_DOUBLE),
    ("variable", _F.TYPE_STRING),
    ("units", _F.TYPE_STRING),
    ("resolution", _F.TYPE_STRING),
    ("uuid", _F.TYPE_STRING),
    ("category", _F.TYPE_STRING),
]


def _build_message_class():
    file_proto = descriptor_pb2.FileDescriptorProto()
    file_proto.name = "emma/v1/data_point.proto"
    file_proto.package = "emma.v1"
    file_proto.syntax = "proto3"

    message = file_proto.message_type.add()
    message.name = "DataPoint"
    for number, (name, field_type) in enumerate(_SCHEMA, start=1):
        f = message.field.add()
        f.name = name
        f.number = number
        f.type = field_type
        f.label = _F.LABEL_OPTIONAL

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())
    return message_factory.GetMessageClass(pool.FindMessageTypeByName("emma.v1.DataPoint"))


DataPointMessage = _build_message_class()


@dataclass
class EncodedPoint:
    """A data point's payload and the format actually used to produce it."""

    payload: bytes
    format: str


def encode_protobuf(point: DataPoint) -> bytes:
    message = DataPointMessage(**point.to_dict())
    return message.SerializeToString()


def encode_json(point: DataPoint) -> bytes:
    return json.dumps(point.to_dict()).encode("utf-8")


def encode(point: DataPoint) -> EncodedPoint:
    """
    Encode a point as protobuf, falling back to JSON if that fails.

    Raises:
        PublishError: if neither encoding succeeds
    """
    try:
        return EncodedPoint(encode_protobuf(point), FORMAT_PROTOBUF)
    except (ValueError, TypeError, EncodeError) as e:
        logger.warning(f"Failed to marshal protobuf for {point.source}, falling back to JSON: {e}")

    try:
        return EncodedPoint(encode_json(point), FORMAT_JSON)
    except (ValueError, TypeError) as e:
        raise PublishError(f"failed to marshal point to JSON: {e}") from e


def decode(payload: bytes, format: str = FORMAT_PROTOBUF) -> DataPoint:
    """Decode a payload produced by encode()."""
    if format == FORMAT_JSON:
        return DataPoint.from_dict(json.loads(payload))
    if format != FORMAT_PROTOBUF:
        raise ValueError(f"unknown encoding format: {format}")

    try:
        message = DataPointMessage.FromString(payload)
    except DecodeError as e:
        raise ValueError(f"invalid protobuf payload: {e}") from e
    return DataPoint(**{name: getattr(message, name) for name, _ in _SCHEMA})
