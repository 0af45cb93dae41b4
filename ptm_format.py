# PTM 1.2 header / compression metadata parsing

"""
FormatReader parses the ASCII token header of a PTM 1.2 file:

    PTM_1.2
    PTM_FORMAT_JPEG_LRGB
    <width> <height>
    <scale x6>
    <bias x6>
    [compressed formats only]
    <compression parameter>
    <transform code x epp>
    <motion vector pair x epp>
    <order x epp>
    <reference plane x epp>      (-1 = no prediction)
    <compressed size x epp>
    <side information size x epp>
    \n
    <binary payload ...>

Tokens are whitespace separated. After the last token the reader skips to the
byte after the next newline; everything from there on is binary payload.
"""

import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import List, Optional, Tuple

import numpy as np

from ptm_errors import FormatError, UnsupportedFormatError

PTM_MAGIC = "PTM_1.2"
NUM_COEFFICIENTS = 6
LRGB_EPP = 9

_WHITESPACE = b" \t\r\n\v\f"
_INT_TOKEN = re.compile(r"[+-]?[0-9]+")
_FLOAT_TOKEN = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")


class PTMFormat(Enum):
    RGB = "PTM_FORMAT_RGB"
    LUM = "PTM_FORMAT_LUM"
    LRGB = "PTM_FORMAT_LRGB"
    JPEG_RGB = "PTM_FORMAT_JPEG_RGB"
    JPEG_LRGB = "PTM_FORMAT_JPEG_LRGB"
    JPEGLS_RGB = "PTM_FORMAT_JPEGLS_RGB"
    JPEGLS_LRGB = "PTM_FORMAT_JPEGLS_LRGB"


SUPPORTED_FORMATS = (PTMFormat.LRGB, PTMFormat.JPEG_LRGB)


def is_compressed(fmt):
    """True for the JPEG and JPEG-LS variants."""
    return fmt in (PTMFormat.JPEG_RGB, PTMFormat.JPEG_LRGB,
                   PTMFormat.JPEGLS_RGB, PTMFormat.JPEGLS_LRGB)


def is_lrgb(fmt):
    """True if the PTM carries a separate block of RGB data."""
    return fmt in (PTMFormat.LRGB, PTMFormat.JPEG_LRGB, PTMFormat.JPEGLS_LRGB)


def entries_per_pixel(fmt):
    """6 coefficients + 3 RGB for LRGB, 6 coefficients per channel otherwise."""
    return LRGB_EPP if is_lrgb(fmt) else 3 * NUM_COEFFICIENTS


class Transform(IntEnum):
    NONE = 0
    PLANE_INVERSION = 1
    MOTION_COMPENSATION = 2

    @classmethod
    def from_code(cls, code):
        """Total mapping: any code other than 1 or 2 is NONE."""
        try:
            return cls(code)
        except ValueError:
            return cls.NONE


@dataclass(frozen=True)
class Header:
    format: PTMFormat
    width: int
    height: int
    scale: Tuple[float, ...]
    bias: Tuple[int, ...]

    @property
    def num_pixels(self):
        return self.width * self.height

    @property
    def epp(self):
        return entries_per_pixel(self.format)


@dataclass(frozen=True)
class CompressionInfo:
    """
    Per-plane metadata of a compressed PTM, every tuple indexed by storage index.
    reference_planes holds None where the file says -1 (no prediction).
    """
    compression_parameter: int
    transforms: Tuple[Transform, ...]
    motion_vectors: Tuple[Tuple[int, int], ...]
    order: Tuple[int, ...]
    reference_planes: Tuple[Optional[int], ...]
    compressed_sizes: Tuple[int, ...]
    side_information_sizes: Tuple[int, ...]

    @property
    def epp(self):
        return len(self.order)

    def processing_order(self) -> List[int]:
        """Storage index for each logical position (inverse of `order`)."""
        inverse = [0] * self.epp
        for storage_index, position in enumerate(self.order):
            inverse[position] = storage_index
        return inverse

    def payload_offsets(self) -> List[int]:
        """Offset of each plane's payload relative to the start of the binary data."""
        offsets = []
        offset = 0
        for compressed, side in zip(self.compressed_sizes, self.side_information_sizes):
            offsets.append(offset)
            offset += compressed + side
        return offsets

    @property
    def payload_size(self):
        return sum(self.compressed_sizes) + sum(self.side_information_sizes)


class TokenReader:
    """Whitespace tokenizer over a bytes buffer, bounded by its length."""

    def __init__(self, data, pos=0):
        self.data = data
        self.pos = pos

    def next_token(self, what):
        data, n = self.data, len(self.data)
        pos = self.pos
        while pos < n and data[pos] in _WHITESPACE:
            pos += 1
        start = pos
        while pos < n and data[pos] not in _WHITESPACE:
            pos += 1
        if start == pos:
            raise FormatError(f"Unexpected end of header while reading {what}")
        # the delimiter after the token stays unread
        self.pos = pos
        try:
            return bytes(data[start:pos]).decode("ascii")
        except UnicodeDecodeError as exc:
            raise FormatError(f"Non-ASCII token for {what}") from exc

    def next_int(self, what):
        token = self.next_token(what)
        if not _INT_TOKEN.fullmatch(token):
            raise FormatError(f"Invalid integer for {what}: {token!r}")
        return int(token)

    def next_float(self, what):
        token = self.next_token(what)
        if not _FLOAT_TOKEN.fullmatch(token):
            raise FormatError(f"Invalid number for {what}: {token!r}")
        return float(token)

    def skip_line(self):
        """Move past the next newline byte; FormatError if there is none."""
        newline = self.data.find(b"\n", self.pos)
        if newline < 0:
            raise FormatError("Missing newline before binary payload")
        self.pos = newline + 1
        return self.pos


class FormatReader:
    def __init__(self, data):
        self.tokens = TokenReader(data)

    def parse(self):
        """
        Returns (Header, CompressionInfo or None, payload_offset).
        payload_offset is the index of the first binary byte in `data`.
        """
        magic = self.tokens.next_token("magic")
        if magic != PTM_MAGIC:
            raise FormatError(f"Wrong version: expected {PTM_MAGIC}, got {magic!r}")

        header = self._read_header()
        info = None
        if is_compressed(header.format):
            info = self._read_compression_info(header.epp)

        offset = self.tokens.skip_line()
        return header, info, offset

    def _read_format(self):
        tag = self.tokens.next_token("format")
        try:
            fmt = PTMFormat(tag)
        except ValueError:
            raise FormatError(f"Unknown format: {tag}") from None
        if fmt not in SUPPORTED_FORMATS:
            raise UnsupportedFormatError(f"Format not supported: {tag}")
        return fmt

    def _read_header(self):
        fmt = self._read_format()
        width = self.tokens.next_int("width")
        height = self.tokens.next_int("height")
        if width <= 0 or height <= 0:
            raise FormatError(f"Invalid dimensions {width}x{height}")
        scale = tuple(self.tokens.next_float(f"scale[{i}]") for i in range(NUM_COEFFICIENTS))
        bias = tuple(self.tokens.next_int(f"bias[{i}]") for i in range(NUM_COEFFICIENTS))
        return Header(format=fmt, width=width, height=height, scale=scale, bias=bias)

    def _read_unsigned(self, what):
        value = self.tokens.next_int(what)
        if value < 0:
            raise FormatError(f"Negative value for {what}: {value}")
        return value

    def _read_compression_info(self, epp):
        t = self.tokens
        parameter = self._read_unsigned("compression parameter")
        transforms = tuple(Transform.from_code(t.next_int(f"transform[{p}]")) for p in range(epp))
        motion_vectors = tuple(
            (t.next_int(f"motion vector[{p}].x"), t.next_int(f"motion vector[{p}].y"))
            for p in range(epp)
        )
        order = tuple(t.next_int(f"order[{p}]") for p in range(epp))
        references = tuple(t.next_int(f"reference plane[{p}]") for p in range(epp))
        compressed = tuple(self._read_unsigned(f"compressed size[{p}]") for p in range(epp))
        side = tuple(self._read_unsigned(f"side information size[{p}]") for p in range(epp))

        if sorted(order) != list(range(epp)):
            raise FormatError(f"Plane order is not a permutation of 0..{epp - 1}: {order}")
        reference_planes = []
        for p, ref in enumerate(references):
            if ref == -1:
                reference_planes.append(None)
            elif 0 <= ref < epp:
                reference_planes.append(ref)
            else:
                raise FormatError(f"Reference plane out of range for plane {p}: {ref}")

        return CompressionInfo(
            compression_parameter=parameter,
            transforms=transforms,
            motion_vectors=motion_vectors,
            order=order,
            reference_planes=tuple(reference_planes),
            compressed_sizes=compressed,
            side_information_sizes=side,
        )


def read_uncompressed_payload(header, data, offset):
    """Coefficient buffer of an uncompressed LRGB file, copied verbatim."""
    size = header.num_pixels * header.epp
    payload = data[offset:offset + size]
    if len(payload) != size:
        raise FormatError(f"Truncated payload: expected {size} bytes, got {len(payload)}")
    return np.frombuffer(bytes(payload), dtype=np.uint8).copy()
