"""
JPEG Scan Check
===============

Verifies that a JPEG frame carries entropy-coded data for every MCU.

libjpeg (and therefore cv2.imdecode) pads a scan that ends early with zero
bits and returns a normal-looking image, only printing a warning. A frame
that the demuxer cut short, or that lost bytes in the pipe, would decode
"successfully" that way. This module walks the Huffman-coded blocks of
sequential JPEGs without dequantizing anything and rejects frames whose
scan runs out before the last MCU.

Design Rules:
    - Only sequential Huffman frames (SOF0, SOF1) are walked
    - Progressive, lossless and arithmetic-coded frames are left to the decoder
    - Scans without explicit DHT tables are left to the decoder
    - Every structural problem raises ImageDecodeError
"""

import struct
from typing import Dict, List, NamedTuple, Tuple

from signcam.exceptions import ImageDecodeError


SOF_SEQUENTIAL = (0xC0, 0xC1)
SOF_OTHER = frozenset((0xC2, 0xC3, 0xC5, 0xC6, 0xC7, 0xC9, 0xCA, 0xCB, 0xCD, 0xCE, 0xCF))
DHT = 0xC4
SOI = 0xD8
EOI = 0xD9
SOS = 0xDA
DRI = 0xDD
TEM = 0x01


class _FrameHeader(NamedTuple):
    width: int
    height: int
    # component id -> (horizontal, vertical) sampling factors
    sampling: Dict[int, Tuple[int, int]]


class _BitReader:
    """MSB-first bit reader over de-stuffed entropy-coded bytes."""

    __slots__ = ("_data", "_pos", "_byte", "_left")

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0
        self._byte = 0
        self._left = 0

    def bit(self) -> int:
        if not self._left:
            if self._pos >= len(self._data):
                raise EOFError
            self._byte = self._data[self._pos]
            self._pos += 1
            self._left = 8
        self._left -= 1
        return (self._byte >> self._left) & 1

    def skip(self, count: int) -> None:
        while count:
            if not self._left:
                if self._pos >= len(self._data):
                    raise EOFError
                self._byte = self._data[self._pos]
                self._pos += 1
                self._left = 8
            taken = min(count, self._left)
            self._left -= taken
            count -= taken


class _HuffmanTable:
    """Canonical Huffman decoding table (ITU T.81, F.2.2.3)."""

    __slots__ = ("values", "mincode", "maxcode", "valptr")

    def __init__(self, counts: bytes, values: bytes) -> None:
        self.values = values
        self.mincode = [0] * 17
        self.maxcode = [-1] * 17
        self.valptr = [0] * 17

        code = 0
        index = 0
        for length in range(1, 17):
            count = counts[length - 1]
            if count:
                self.valptr[length] = index
                self.mincode[length] = code
                code += count
                index += count
                self.maxcode[length] = code - 1
            code <<= 1

    def decode(self, reader: _BitReader) -> int:
        code = 0
        for length in range(1, 17):
            code = (code << 1) | reader.bit()
            if code <= self.maxcode[length]:
                return self.values[self.valptr[length] + code - self.mincode[length]]
        raise ImageDecodeError("Invalid Huffman code in scan data")


def check_scan_complete(data: bytes) -> None:
    """
    Check that a JPEG holds a complete scan.

    Args:
        data: JPEG bytes from SOI to EOI

    Raises:
        ImageDecodeError: If a segment is cut off, the scan data ends
            before the last MCU, or no scan is present
    """
    try:
        _check(data)
    except (IndexError, struct.error) as e:
        raise ImageDecodeError(f"Malformed JPEG segment: {e}") from e


def _check(data: bytes) -> None:
    if data[:2] != b"\xff\xd8":
        raise ImageDecodeError("Missing SOI marker")

    tables: Dict[Tuple[int, int], _HuffmanTable] = {}
    frame = None
    restart_interval = 0
    scans = 0
    pos = 2

    while True:
        marker, pos = _next_marker(data, pos)
        if marker == EOI:
            break
        if marker in (SOI, TEM) or 0xD0 <= marker <= 0xD7:
            continue

        (length,) = struct.unpack_from(">H", data, pos)
        if length < 2 or pos + length > len(data):
            raise ImageDecodeError(
                f"Segment 0xFF{marker:02X} at offset {pos - 2} runs past the end of the frame"
            )
        body = data[pos + 2:pos + length]
        pos += length

        if marker in SOF_SEQUENTIAL:
            frame = _parse_frame_header(body)
        elif marker in SOF_OTHER:
            return
        elif marker == DHT:
            _parse_huffman_tables(body, tables)
        elif marker == DRI:
            (restart_interval,) = struct.unpack_from(">H", body)
        elif marker == SOS:
            if frame is None:
                raise ImageDecodeError("Scan before frame header")
            segments, pos = _split_entropy_data(data, pos)
            if frame.height == 0:
                # Height is defined by a DNL marker after the scan
                return
            _walk_scan(frame, body, tables, restart_interval, segments)
            scans += 1

    if not scans:
        raise ImageDecodeError("No scan data before EOI")


def _next_marker(data: bytes, pos: int) -> Tuple[int, int]:
    if pos >= len(data) or data[pos] != 0xFF:
        pos = data.find(b"\xff", pos)
        if pos == -1:
            raise ImageDecodeError("Frame ends without EOI marker")
    while pos < len(data) and data[pos] == 0xFF:
        pos += 1
    if pos >= len(data):
        raise ImageDecodeError("Frame ends inside a marker")
    return data[pos], pos + 1


def _parse_frame_header(body: bytes) -> _FrameHeader:
    height, width, count = struct.unpack_from(">HHB", body, 1)
    sampling = {}
    for i in range(count):
        component_id, factors = body[6 + 3 * i], body[7 + 3 * i]
        horizontal, vertical = factors >> 4, factors & 0x0F
        if not horizontal or not vertical:
            raise ImageDecodeError(f"Invalid sampling factors for component {component_id}")
        sampling[component_id] = (horizontal, vertical)
    if not sampling or not width:
        raise ImageDecodeError("Frame header has no components or zero width")
    return _FrameHeader(width=width, height=height, sampling=sampling)


def _parse_huffman_tables(body: bytes, tables: Dict[Tuple[int, int], _HuffmanTable]) -> None:
    pos = 0
    while pos < len(body):
        table_class, table_id = body[pos] >> 4, body[pos] & 0x0F
        counts = body[pos + 1:pos + 17]
        if len(counts) < 16:
            raise ImageDecodeError("Truncated DHT segment")
        total = sum(counts)
        values = body[pos + 17:pos + 17 + total]
        if len(values) < total:
            raise ImageDecodeError("Truncated DHT segment")
        tables[(table_class, table_id)] = _HuffmanTable(counts, values)
        pos += 17 + total


def _split_entropy_data(data: bytes, pos: int) -> Tuple[List[bytes], int]:
    """
    Cut entropy-coded data into restart intervals.

    Returns:
        De-stuffed interval payloads and the offset of the marker that
        ends the scan
    """
    segments = []
    start = pos
    while True:
        ff = data.find(b"\xff", pos)
        if ff == -1 or ff + 1 >= len(data):
            raise ImageDecodeError("Scan data is not terminated by a marker")
        following = data[ff + 1]
        if following == 0x00:
            pos = ff + 2
        elif 0xD0 <= following <= 0xD7:
            segments.append(data[start:ff].replace(b"\xff\x00", b"\xff"))
            start = pos = ff + 2
        else:
            segments.append(data[start:ff].replace(b"\xff\x00", b"\xff"))
            return segments, ff


def _walk_scan(
    frame: _FrameHeader,
    body: bytes,
    tables: Dict[Tuple[int, int], _HuffmanTable],
    restart_interval: int,
    segments: List[bytes],
) -> None:
    count = body[0]
    max_h = max(h for h, _ in frame.sampling.values())
    max_v = max(v for _, v in frame.sampling.values())

    blocks: List[Tuple[_HuffmanTable, _HuffmanTable]] = []
    factors = []
    for i in range(count):
        component_id, selectors = body[1 + 2 * i], body[2 + 2 * i]
        if component_id not in frame.sampling:
            raise ImageDecodeError(f"Scan references unknown component {component_id}")
        dc = tables.get((0, selectors >> 4))
        ac = tables.get((1, selectors & 0x0F))
        if dc is None or ac is None:
            return
        h, v = frame.sampling[component_id]
        factors.append((h, v))
        blocks.extend([(dc, ac)] * (h * v))

    if count == 1:
        # Non-interleaved: one block per MCU over the component's own grid
        h, v = factors[0]
        blocks = blocks[:1]
        total = _ceil_div(frame.width * h, max_h * 8) * _ceil_div(frame.height * v, max_v * 8)
    else:
        total = _ceil_div(frame.width, max_h * 8) * _ceil_div(frame.height, max_v * 8)

    per_interval = restart_interval or total
    decoded = 0
    for segment in segments:
        if decoded >= total:
            break
        reader = _BitReader(segment)
        end = min(decoded + per_interval, total)
        try:
            while decoded < end:
                for dc, ac in blocks:
                    _skip_block(reader, dc, ac)
                decoded += 1
        except EOFError:
            raise ImageDecodeError(
                f"Scan data ends after {decoded} of {total} MCUs"
            ) from None

    if decoded < total:
        raise ImageDecodeError(f"Scan data ends after {decoded} of {total} MCUs")


def _skip_block(reader: _BitReader, dc: _HuffmanTable, ac: _HuffmanTable) -> None:
    reader.skip(dc.decode(reader))

    k = 1
    while k < 64:
        symbol = ac.decode(reader)
        run, size = symbol >> 4, symbol & 0x0F
        if not size:
            if run != 15:
                return
            k += 16
            continue
        k += run + 1
        reader.skip(size)


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)
