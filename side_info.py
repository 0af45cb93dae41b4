# Side information: sparse exact pixel overrides applied after prediction

"""
A side information payload is a run of 5-byte records:

    4 bytes  big-endian pixel index (row * width + col, bottom-up rows)
    1 byte   replacement sample

The index counts rows from the other end of the plane, so the target pixel
in the decoded plane is (height - 1 - row, col).
"""

import numpy as np

from ptm_errors import FormatError

RECORD_DTYPE = np.dtype([("index", ">u4"), ("value", "u1")])


class SideInformationPatch:
    def __init__(self, indices, values):
        self.indices = np.asarray(indices, dtype=np.int64)
        self.values = np.asarray(values, dtype=np.uint8)

    def __len__(self):
        return len(self.indices)

    @classmethod
    def parse(cls, payload):
        if not payload:
            return cls([], [])
        if len(payload) % RECORD_DTYPE.itemsize:
            raise FormatError(
                f"Side information length {len(payload)} is not a multiple of {RECORD_DTYPE.itemsize}"
            )
        records = np.frombuffer(payload, dtype=RECORD_DTYPE)
        return cls(records["index"], records["value"])

    def targets(self, width, height):
        """(rows, cols) in plane orientation for every record."""
        if len(self) and int(self.indices.max()) >= width * height:
            raise FormatError(
                f"Side information index {int(self.indices.max())} outside a {width}x{height} plane"
            )
        rows = self.indices // width
        cols = self.indices % width
        return height - 1 - rows, cols

    def apply(self, plane):
        """Overwrite the targeted samples of `plane` (HxW) in place."""
        if not len(self):
            return plane
        height, width = plane.shape
        rows, cols = self.targets(width, height)
        # later records win on duplicate targets
        plane[rows, cols] = self.values
        return plane
