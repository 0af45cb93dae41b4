# Compressor class - writes PTM 1.2 files (uncompressed and JPEG LRGB)

"""
Compressor - the inverse of the load path, mostly used to produce test files:
 - LRGB: header tokens followed by the raw coefficient buffer
 - JPEG LRGB: the buffer is split into 9 planes (reversed raster order),
   planes with a reference plane are stored as residuals
       residual = (orig - T(ref) + 128) mod 255
   and every sample the decoder cannot reproduce that way (orig == 255) is
   sent as side information. Each plane is encoded with Pillow; PNG keeps
   the round trip exact, JPEG is lossy.
"""

from io import BytesIO

import numpy as np
from PIL import Image

from predictor import PREDICTION_MODULUS, PREDICTION_OFFSET, PlanePredictor
from ptm_format import NUM_COEFFICIENTS, PTM_MAGIC, PTMFormat, Transform
from side_info import RECORD_DTYPE


def split_planes(header, coefficients):
    """Coefficient buffer -> epp HxW planes in the compressed (reversed) raster order."""
    n = header.num_pixels
    buf = np.asarray(coefficients, dtype=np.uint8)
    coeffs = buf[:n * NUM_COEFFICIENTS].reshape(n, NUM_COEFFICIENTS)
    rgb = buf[n * NUM_COEFFICIENTS:].reshape(n, 3)
    columns = [coeffs[:, p] for p in range(NUM_COEFFICIENTS)] + [rgb[:, c] for c in range(3)]
    return [np.ascontiguousarray(col[::-1]).reshape(header.height, header.width) for col in columns]


def side_information_records(plane, mask):
    """Records restoring plane[mask]; indices count rows from the bottom."""
    height, width = plane.shape
    rows, cols = np.nonzero(mask)
    records = np.zeros(len(rows), dtype=RECORD_DTYPE)
    records["index"] = (height - 1 - rows) * width + cols
    records["value"] = plane[rows, cols]
    return records.tobytes()


class Compressor:
    def __init__(self, plane_format="PNG", quality=95):
        self.plane_format = plane_format
        self.quality = quality

    def header_tokens(self, header):
        return [
            PTM_MAGIC,
            header.format.value,
            f"{header.width} {header.height}",
            " ".join(repr(float(s)) for s in header.scale),
            " ".join(str(int(b)) for b in header.bias),
        ]

    def compress_lrgb(self, header, coefficients):
        buf = np.asarray(coefficients, dtype=np.uint8)
        if buf.size != header.num_pixels * header.epp:
            raise ValueError(f"Coefficient buffer has {buf.size} bytes, expected {header.num_pixels * header.epp}")
        text = "\n".join(self.header_tokens(header)) + "\n"
        return text.encode("ascii") + buf.tobytes()

    def encode_plane(self, plane):
        out = BytesIO()
        img = Image.fromarray(np.ascontiguousarray(plane, dtype=np.uint8))
        if self.plane_format.upper() in ("JPEG", "JPG"):
            img.save(out, format="JPEG", quality=self.quality)
        else:
            img.save(out, format=self.plane_format)
        return out.getvalue()

    def compress_jpeg_lrgb(self, header, coefficients, order=None, reference_planes=None,
                           transforms=None, compression_parameter=0):
        """
        order[p]: logical position of storage plane p (default: identity)
        reference_planes[p]: storage index predicting plane p, or None
        transforms[p]: Transform applied to the reference samples
        A reference must come earlier in `order` than the plane it predicts.
        """
        epp = header.epp
        order = list(order) if order is not None else list(range(epp))
        references = list(reference_planes) if reference_planes is not None else [None] * epp
        transforms = [Transform(t) for t in transforms] if transforms is not None else [Transform.NONE] * epp
        if sorted(order) != list(range(epp)):
            raise ValueError(f"order must be a permutation of 0..{epp - 1}")
        for p, ref in enumerate(references):
            if ref is not None and order[ref] >= order[p]:
                raise ValueError(f"Plane {p} references plane {ref}, which is not reconstructed before it")

        planes = split_planes(header, coefficients)
        stored, side = [None] * epp, [b""] * epp
        for p in sorted(range(epp), key=lambda q: order[q]):
            orig = planes[p]
            ref = references[p]
            if ref is None:
                stored[p] = orig
                continue
            reference = PlanePredictor(transforms[p]).transform_reference(planes[ref])
            residual = np.mod(orig.astype(np.int32) - reference + PREDICTION_OFFSET, PREDICTION_MODULUS)
            stored[p] = residual.astype(np.uint8)
            side[p] = side_information_records(orig, orig == 255)

        encoded = [self.encode_plane(plane) for plane in stored]
        lines = self.header_tokens(header) + [
            str(int(compression_parameter)),
            " ".join(str(int(t)) for t in transforms),
            " ".join("0 0" for _ in range(epp)),
            " ".join(str(o) for o in order),
            " ".join(str(-1 if r is None else r) for r in references),
            " ".join(str(len(e)) for e in encoded),
            " ".join(str(len(s)) for s in side),
        ]
        payload = b"".join(e + s for e, s in zip(encoded, side))
        return ("\n".join(lines) + "\n").encode("ascii") + payload

    def compress(self, header, coefficients, **kwargs):
        if header.format == PTMFormat.LRGB:
            return self.compress_lrgb(header, coefficients)
        if header.format == PTMFormat.JPEG_LRGB:
            return self.compress_jpeg_lrgb(header, coefficients, **kwargs)
        raise ValueError(f"Can't write format {header.format.value}")

    def save_compressed(self, data, out_path):
        """Write PTM bytes produced by compress() to out_path."""
        with open(out_path, "wb") as f:
            f.write(data)
        return out_path
