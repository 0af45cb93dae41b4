# Decompressor class - reads a PTM file and reconstructs its coefficients

"""
Decompressor: loads a PTM 1.2 file and rebuilds its coefficient buffer.
 - uncompressed LRGB: the payload is the buffer
 - JPEG LRGB: PlaneDecoder -> PlaneReconstructor -> CoefficientAssembler
The buffer is then split into three RGB images by image_io.export_images.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np

from assembler import CoefficientAssembler
from image_io import export_images
from plane_decoder import PlaneDecoder
from predictor import PlaneReconstructor
from ptm_errors import PTMIOError, UnsupportedFormatError
from ptm_format import CompressionInfo, FormatReader, Header, PTMFormat, read_uncompressed_payload

logger = logging.getLogger(__name__)


@dataclass
class PTM:
    header: Header
    compression: Optional[CompressionInfo]
    coefficients: np.ndarray


def read_file(path):
    path = Path(path)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise PTMIOError(f"Can't open file {path}: {exc}") from exc


def parse_ptm(data, workers=1):
    """Decode PTM file contents (bytes) into a PTM."""
    header, info, offset = FormatReader(data).parse()
    logger.debug("%s %dx%d, payload at byte %d", header.format.value, header.width, header.height, offset)

    if header.format == PTMFormat.LRGB:
        coefficients = read_uncompressed_payload(header, data, offset)
    elif header.format == PTMFormat.JPEG_LRGB:
        planes, side_info = PlaneDecoder(header, info, workers=workers).decode(data, offset)
        PlaneReconstructor(info).reconstruct(planes, side_info)
        coefficients = CoefficientAssembler(header).assemble(planes)
    else:
        raise UnsupportedFormatError(f"Can't read format {header.format.value}, not implemented")
    return PTM(header=header, compression=info, coefficients=coefficients)


def load_ptm(path, workers=1):
    return parse_ptm(read_file(path), workers=workers)


def ptm_to_images(ptm):
    return export_images(ptm.header, ptm.coefficients)


class Decompressor:
    def __init__(self, ptm_path, workers=1):
        self.ptm = load_ptm(ptm_path, workers=workers)

    @property
    def header(self):
        return self.ptm.header

    def decompress(self):
        """Returns (coeff_h, coeff_l, rgb), each (H,W,3) uint8."""
        return ptm_to_images(self.ptm)
