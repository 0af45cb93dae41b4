# CoefficientAssembler - reconstructed planes -> flat coefficient buffer

"""
Coefficient buffer layout (width*height*9 bytes):

    [ pixel 0: c0..c5 | pixel 1: c0..c5 | ... ]   num_pixels * 6
    [ pixel 0: r g b  | pixel 1: r g b  | ... ]   num_pixels * 3

Compressed planes store pixels in reversed raster order; output pixel k is
taken from plane sample num_pixels - k - 1.
"""

import numpy as np

from ptm_format import NUM_COEFFICIENTS


class CoefficientAssembler:
    def __init__(self, header):
        self.header = header

    def assemble(self, planes):
        """planes: epp HxW uint8 arrays in storage order -> flat uint8 buffer."""
        h, w = self.header.height, self.header.width
        if len(planes) != self.header.epp:
            raise ValueError(f"Expected {self.header.epp} planes, got {len(planes)}")
        for p, plane in enumerate(planes):
            if plane.shape != (h, w):
                raise ValueError(f"Plane {p} has shape {plane.shape}, expected {(h, w)}")

        # storage plane p always lands in slot p, whatever order it was rebuilt in
        reversed_planes = [plane.ravel()[::-1] for plane in planes]
        coeffs = np.stack(reversed_planes[:NUM_COEFFICIENTS], axis=1)
        rgb = np.stack(reversed_planes[NUM_COEFFICIENTS:], axis=1)
        return np.concatenate([coeffs.ravel(), rgb.ravel()]).astype(np.uint8)
