"""Prometheus remote read/write wire codec.

This module converts between request/response bodies (Snappy block
compression around Protobuf messages) and the adapter's own data types.
"""

import logging
from typing import Iterable

import snappy
from google.protobuf.message import DecodeError as ProtobufDecodeError

from duckprom.exceptions import DecompressionError, PayloadDecodeError
from duckprom.models import (
    MatchType,
    Matcher,
    ReadQuery,
    SamplePoint,
    TimeSeries,
    WireSeries,
    WriteBatch,
)
from duckprom.remote import prompb

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/x-protobuf"


def _match_type(value: int) -> MatchType | int:
    try:
        return MatchType(value)
    except ValueError:
        return value


class RemoteCodec:
    """Codec for the Prometheus remote storage protocol.

    Protocol details:
    - Content-Type: application/x-protobuf
    - Content-Encoding: snappy (block format, not framed)
    - Write body: WriteRequest
    - Read body: ReadRequest, answered with a ReadResponse

    Decompression failures raise DecompressionError and never reach the
    Protobuf parser; parse failures raise PayloadDecodeError. Both are
    DecodeError subclasses.

    Example:
        codec = RemoteCodec()

        batch = codec.decode_write(request_body)
        for series in batch.series:
            print(series.labels, len(series.samples))
    """

    @staticmethod
    def decompress(compressed_data: bytes) -> bytes:
        """Undo Snappy block compression.

        Args:
            compressed_data: Request body

        Returns:
            Decompressed bytes

        Raises:
            DecompressionError: If the body is not valid Snappy block data
        """
        logger.debug(f"Decompressing {len(compressed_data)} bytes with Snappy")
        try:
            decompressed = snappy.decompress(compressed_data)
        except Exception as e:
            logger.warning(f"Failed to decompress Snappy data: {e}")
            raise DecompressionError(str(e)) from e
        logger.debug(f"Decompressed to {len(decompressed)} bytes")
        return decompressed

    @staticmethod
    def compress(data: bytes) -> bytes:
        """Apply Snappy block compression."""
        return snappy.compress(data)

    @classmethod
    def _parse(cls, message_cls, compressed_data: bytes):
        raw = cls.decompress(compressed_data)
        message = message_cls()
        try:
            message.ParseFromString(raw)
        except ProtobufDecodeError as e:
            name = message_cls.DESCRIPTOR.name
            logger.warning(f"Failed to decode {name}: {e}")
            raise PayloadDecodeError(name, str(e)) from e
        return message

    @classmethod
    def decode_write(cls, compressed_data: bytes) -> WriteBatch:
        """Decode a remote write request body.

        Args:
            compressed_data: Snappy-compressed Protobuf WriteRequest

        Returns:
            WriteBatch with one WireSeries per time series, labels in wire order

        Raises:
            DecompressionError: If Snappy decompression fails
            PayloadDecodeError: If Protobuf decoding fails
        """
        request = cls._parse(prompb.WriteRequest, compressed_data)

        batch = WriteBatch(
            series=[
                WireSeries(
                    labels=[(label.name, label.value) for label in ts.labels],
                    samples=[
                        SamplePoint(sample.timestamp, sample.value)
                        for sample in ts.samples
                    ],
                )
                for ts in request.timeseries
            ]
        )

        logger.info(
            f"Decoded WriteRequest with {len(batch.series)} time series, "
            f"{batch.sample_count} samples"
        )
        return batch

    @classmethod
    def decode_read(cls, compressed_data: bytes) -> list[ReadQuery]:
        """Decode a remote read request body.

        Args:
            compressed_data: Snappy-compressed Protobuf ReadRequest

        Returns:
            All queries carried by the request, in order

        Raises:
            DecompressionError: If Snappy decompression fails
            PayloadDecodeError: If Protobuf decoding fails or there are no queries
        """
        request = cls._parse(prompb.ReadRequest, compressed_data)

        if not request.queries:
            raise PayloadDecodeError("ReadRequest", "request contains no queries")

        queries = [
            ReadQuery(
                start_ms=query.start_timestamp_ms,
                end_ms=query.end_timestamp_ms,
                matchers=tuple(
                    Matcher(
                        name=matcher.name,
                        kind=_match_type(matcher.type),
                        value=matcher.value,
                    )
                    for matcher in query.matchers
                ),
            )
            for query in request.queries
        ]

        logger.debug(f"Decoded ReadRequest with {len(queries)} queries")
        return queries

    @classmethod
    def encode_read_response(cls, series: Iterable[TimeSeries]) -> bytes:
        """Encode series as a single-result ReadResponse.

        Args:
            series: Time series answering the read query

        Returns:
            Snappy-compressed Protobuf ReadResponse
        """
        response = prompb.ReadResponse()
        result = response.results.add()
        for ts in series:
            _fill_series(result.timeseries.add(), ts.labels.items(), ts.samples)
        return cls.compress(response.SerializeToString())

    @classmethod
    def decode_read_response(cls, compressed_data: bytes) -> list[TimeSeries]:
        """Decode a ReadResponse, flattening all query results.

        Raises:
            DecompressionError: If Snappy decompression fails
            PayloadDecodeError: If Protobuf decoding fails
        """
        response = cls._parse(prompb.ReadResponse, compressed_data)
        return [
            TimeSeries(
                labels={label.name: label.value for label in ts.labels},
                samples=[SamplePoint(s.timestamp, s.value) for s in ts.samples],
            )
            for result in response.results
            for ts in result.timeseries
        ]

    @classmethod
    def encode_write_request(cls, batch: WriteBatch) -> bytes:
        """Encode a WriteBatch the way a Prometheus server would send it."""
        request = prompb.WriteRequest()
        for series in batch.series:
            _fill_series(request.timeseries.add(), series.labels, series.samples)
        return cls.compress(request.SerializeToString())

    @classmethod
    def encode_read_request(cls, queries: Iterable[ReadQuery]) -> bytes:
        """Encode read queries the way a Prometheus server would send them."""
        request = prompb.ReadRequest()
        for query in queries:
            q = request.queries.add()
            q.start_timestamp_ms = query.start_ms
            q.end_timestamp_ms = query.end_ms
            for matcher in query.matchers:
                q.matchers.add(
                    type=int(matcher.kind), name=matcher.name, value=matcher.value
                )
        return cls.compress(request.SerializeToString())


def _fill_series(message, labels, samples) -> None:
    for name, value in labels:
        message.labels.add(name=name, value=value)
    for timestamp, value in samples:
        message.samples.add(timestamp=timestamp, value=value)
