"""Protocol buffer messages for the Prometheus remote read/write protocol.

The descriptors mirror the subset of ``prometheus/prompb`` (remote.proto and
types.proto) that the adapter reads or writes. Fields the adapter ignores
(exemplars, histograms, read hints, metric metadata) are left out and survive
parsing as unknown fields.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_FDP = descriptor_pb2.FieldDescriptorProto

PACKAGE = "prometheus"


def _field(
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    field_type: int,
    type_name: str | None = None,
    repeated: bool = False,
) -> None:
    f = message.field.add()
    f.name = name
    f.number = number
    f.type = field_type
    f.label = _FDP.LABEL_REPEATED if repeated else _FDP.LABEL_OPTIONAL
    if type_name:
        f.type_name = f".{PACKAGE}.{type_name}"


def _enum(parent, name: str, values: list[tuple[str, int]]) -> None:
    enum = parent.enum_type.add()
    enum.name = name
    for value_name, number in values:
        v = enum.value.add()
        v.name = value_name
        v.number = number


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto()
    fdp.name = "duckprom/prompb.proto"
    fdp.package = PACKAGE
    fdp.syntax = "proto3"

    sample = fdp.message_type.add(name="Sample")
    _field(sample, "value", 1, _FDP.TYPE_DOUBLE)
    _field(sample, "timestamp", 2, _FDP.TYPE_INT64)

    label = fdp.message_type.add(name="Label")
    _field(label, "name", 1, _FDP.TYPE_STRING)
    _field(label, "value", 2, _FDP.TYPE_STRING)

    series = fdp.message_type.add(name="TimeSeries")
    _field(series, "labels", 1, _FDP.TYPE_MESSAGE, "Label", repeated=True)
    _field(series, "samples", 2, _FDP.TYPE_MESSAGE, "Sample", repeated=True)

    write = fdp.message_type.add(name="WriteRequest")
    _field(write, "timeseries", 1, _FDP.TYPE_MESSAGE, "TimeSeries", repeated=True)

    matcher = fdp.message_type.add(name="LabelMatcher")
    _enum(matcher, "Type", [("EQ", 0), ("NEQ", 1), ("RE", 2), ("NRE", 3)])
    _field(matcher, "type", 1, _FDP.TYPE_ENUM, "LabelMatcher.Type")
    _field(matcher, "name", 2, _FDP.TYPE_STRING)
    _field(matcher, "value", 3, _FDP.TYPE_STRING)

    query = fdp.message_type.add(name="Query")
    _field(query, "start_timestamp_ms", 1, _FDP.TYPE_INT64)
    _field(query, "end_timestamp_ms", 2, _FDP.TYPE_INT64)
    _field(query, "matchers", 3, _FDP.TYPE_MESSAGE, "LabelMatcher", repeated=True)

    read = fdp.message_type.add(name="ReadRequest")
    _enum(read, "ResponseType", [("SAMPLES", 0), ("STREAMED_XOR_CHUNKS", 1)])
    _field(read, "queries", 1, _FDP.TYPE_MESSAGE, "Query", repeated=True)
    _field(
        read,
        "accepted_response_types",
        2,
        _FDP.TYPE_ENUM,
        "ReadRequest.ResponseType",
        repeated=True,
    )

    result = fdp.message_type.add(name="QueryResult")
    _field(result, "timeseries", 1, _FDP.TYPE_MESSAGE, "TimeSeries", repeated=True)

    response = fdp.message_type.add(name="ReadResponse")
    _field(response, "results", 1, _FDP.TYPE_MESSAGE, "QueryResult", repeated=True)

    return fdp


_pool = descriptor_pool.DescriptorPool()
DESCRIPTOR = _pool.AddSerializedFile(_build_file().SerializeToString())


def _message(name: str):
    return message_factory.GetMessageClass(
        _pool.FindMessageTypeByName(f"{PACKAGE}.{name}")
    )


Sample = _message("Sample")
Label = _message("Label")
TimeSeries = _message("TimeSeries")
WriteRequest = _message("WriteRequest")
LabelMatcher = _message("LabelMatcher")
Query = _message("Query")
ReadRequest = _message("ReadRequest")
QueryResult = _message("QueryResult")
ReadResponse = _message("ReadResponse")

__all__ = [
    "DESCRIPTOR",
    "Sample",
    "Label",
    "TimeSeries",
    "WriteRequest",
    "LabelMatcher",
    "Query",
    "ReadRequest",
    "QueryResult",
    "ReadResponse",
]
