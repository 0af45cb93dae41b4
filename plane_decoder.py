# PlaneDecoder - reads per-plane payloads and decodes them with Pillow

"""
PlaneDecoder: for compressed PTMs, walks the binary payload plane by plane
(storage order). Each plane is `compressed_sizes[p]` bytes of an encoded
single-channel image followed by `side_information_sizes[p]` raw bytes.

The byte slicing is sequential; decoding the slices is independent per plane
and can be spread over a thread pool with `workers > 1`.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO

import numpy as np
from PIL import Image, UnidentifiedImageError

from ptm_errors import CodecError, FormatError

logger = logging.getLogger(__name__)


def decode_plane(buf, width, height, plane_index=0):
    """Decode one encoded single-channel image into an HxW uint8 array."""
    try:
        with Image.open(BytesIO(buf)) as img:
            img.load()
            bands = len(img.getbands())
            if bands != 1:
                raise CodecError(f"Plane {plane_index}: expected 1 channel, got {bands}")
            if img.size != (width, height):
                raise CodecError(
                    f"Plane {plane_index}: incompatible image size "
                    f"{img.size[0]}x{img.size[1]}, header says {width}x{height}"
                )
            arr = np.array(img.convert("L"), dtype=np.uint8)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise CodecError(f"Plane {plane_index}: cannot decode image data ({exc})") from exc
    return arr


class PlaneDecoder:
    def __init__(self, header, info, workers=1):
        self.header = header
        self.info = info
        self.workers = max(1, int(workers))

    def split_payload(self, data, offset):
        """
        Returns (encoded_planes, side_information) lists in storage order.
        Raises FormatError if the data ends before the declared sizes.
        """
        encoded, side_info = [], []
        pos = offset
        for p in range(self.info.epp):
            size = self.info.compressed_sizes[p]
            chunk = data[pos:pos + size]
            if len(chunk) != size:
                raise FormatError(f"Truncated payload in plane {p}: expected {size} bytes, got {len(chunk)}")
            pos += size
            encoded.append(bytes(chunk))

            size = self.info.side_information_sizes[p]
            chunk = data[pos:pos + size]
            if len(chunk) != size:
                raise FormatError(f"Truncated side information in plane {p}: expected {size} bytes, got {len(chunk)}")
            pos += size
            side_info.append(bytes(chunk))
        return encoded, side_info

    def decode(self, data, offset):
        """
        data: whole file contents, offset: start of the binary payload.
        Returns (planes, side_information), both indexed by storage index.
        """
        encoded, side_info = self.split_payload(data, offset)
        w, h = self.header.width, self.header.height
        # planes as large as the header declares are not decompression bombs
        if Image.MAX_IMAGE_PIXELS is not None and w * h > Image.MAX_IMAGE_PIXELS:
            Image.MAX_IMAGE_PIXELS = w * h

        if self.workers == 1:
            planes = [decode_plane(buf, w, h, p) for p, buf in enumerate(encoded)]
        else:
            logger.debug("Decoding %d planes on %d threads", len(encoded), self.workers)
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                planes = list(pool.map(lambda item: decode_plane(item[1], w, h, item[0]),
                                       enumerate(encoded)))
        return planes, side_info
