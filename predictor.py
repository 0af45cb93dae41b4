# PlanePredictor / PlaneReconstructor (inter-plane prediction + side information)

"""
Inter-plane differential prediction used by compressed LRGB PTMs.
A plane with a reference plane j stores residuals; the decoder rebuilds it as

    plane[i] = (T(plane[j]) + plane[i] - 128) mod 255

where T is the plane's transform applied to the reference samples:
 - NONE: identity
 - PLANE_INVERSION: 255 - ref
 - MOTION_COMPENSATION: identity (motion vectors are parsed but not applied)

Planes are visited in ascending logical position (the `order` permutation),
so a reference plane is used in whatever state it holds at that moment.
"""

import logging

import numpy as np

from ptm_format import Transform
from side_info import SideInformationPatch

logger = logging.getLogger(__name__)

PREDICTION_OFFSET = 128
PREDICTION_MODULUS = 255


class PlanePredictor:
    def __init__(self, transform=Transform.NONE):
        self.transform = transform

    def transform_reference(self, reference):
        ref = reference.astype(np.int32)
        if self.transform == Transform.PLANE_INVERSION:
            return 255 - ref
        # MOTION_COMPENSATION falls through untransformed
        return ref

    def predict(self, residual, reference):
        """
        residual, reference: HxW uint8.
        Returns the reconstructed HxW uint8 plane; np.mod is a floor modulus,
        so negative intermediates still land in [0, 255).
        """
        ref = self.transform_reference(reference)
        values = ref + residual.astype(np.int32) - PREDICTION_OFFSET
        return np.mod(values, PREDICTION_MODULUS).astype(np.uint8)


class PlaneReconstructor:
    def __init__(self, info):
        self.info = info

    def reconstruct_plane(self, planes, i):
        """Prediction + side information for storage plane i, in place."""
        j = self.info.reference_planes[i]
        if j is not None:
            predictor = PlanePredictor(self.info.transforms[i])
            planes[i][...] = predictor.predict(planes[i], planes[j])
        return planes[i]

    def reconstruct(self, planes, side_information):
        """
        planes: list of epp HxW uint8 arrays (storage order), modified in place.
        side_information: list of epp raw payloads (storage order).
        """
        order = self.info.processing_order()
        position = {storage: n for n, storage in enumerate(order)}
        self._warn_unsupported(position)

        for i in order:
            self.reconstruct_plane(planes, i)
            patch = SideInformationPatch.parse(side_information[i])
            if len(patch):
                logger.debug("Plane %d: applying %d side information records", i, len(patch))
                patch.apply(planes[i])
        return planes

    def _warn_unsupported(self, position):
        for i, j in enumerate(self.info.reference_planes):
            if j is None:
                continue
            if self.info.transforms[i] == Transform.MOTION_COMPENSATION:
                logger.warning("Plane %d uses motion compensation, which is not supported; "
                               "reconstructing it untransformed", i)
            if position[j] >= position[i]:
                logger.warning("Plane %d references plane %d, which is reconstructed later; "
                               "using its current samples", i, j)
