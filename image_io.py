# ImageExporter - coefficient buffer -> three RGB images, save/display helpers

from PIL import Image
import numpy as np
import os
import matplotlib.pyplot as plt

from ptm_errors import ImageWriteError, UnsupportedFormatError
from ptm_format import NUM_COEFFICIENTS, PTMFormat

OUTPUT_DIR = "outputs"
COEFF_H_NAME = "coeffH.png"
COEFF_L_NAME = "coeffL.png"
RGB_NAME = "rgb.png"
OUTPUT_NAMES = (COEFF_H_NAME, COEFF_L_NAME, RGB_NAME)
IMAGE_TITLES = ("High order coefficients", "Low order coefficients", "RGB")


def export_images(header, coefficients):
    """
    Split a coefficient buffer into (coeff_h, coeff_l, rgb), each (H,W,3) uint8.
    coeff_h holds coefficients 0..2, coeff_l coefficients 3..5.
    Uncompressed LRGB is flipped upside down, JPEG LRGB left to right.
    """
    if header.format not in (PTMFormat.LRGB, PTMFormat.JPEG_LRGB):
        raise UnsupportedFormatError(f"Can't export format {header.format.value}")

    h, w = header.height, header.width
    n = header.num_pixels
    buf = np.asarray(coefficients, dtype=np.uint8)
    if buf.size != n * header.epp:
        raise ValueError(f"Coefficient buffer has {buf.size} bytes, expected {n * header.epp}")

    coeffs = buf[:n * NUM_COEFFICIENTS].reshape(h, w, NUM_COEFFICIENTS)
    rgb = buf[n * NUM_COEFFICIENTS:].reshape(h, w, 3)
    images = [coeffs[:, :, 0:3], coeffs[:, :, 3:6], rgb]

    if header.format == PTMFormat.LRGB:
        images = [img[::-1, :, :] for img in images]
    else:
        images = [img[:, ::-1, :] for img in images]
    return tuple(np.ascontiguousarray(img) for img in images)


def save_image_array(arr, path):
    """Save a numpy image array (H,W,3) or (H,W) as PNG."""
    try:
        img = Image.fromarray(np.uint8(np.clip(arr, 0, 255)))
        img.save(path)
    except (OSError, ValueError, TypeError) as exc:
        raise ImageWriteError(f"Couldn't write image file {path}: {exc}") from exc
    return path


def save_images(images, out_dir=OUTPUT_DIR, names=OUTPUT_NAMES):
    """Write (coeff_h, coeff_l, rgb) under out_dir; returns the written paths."""
    try:
        os.makedirs(out_dir, exist_ok=True)
    except OSError as exc:
        raise ImageWriteError(f"Couldn't create output directory {out_dir}: {exc}") from exc
    return [save_image_array(img, os.path.join(out_dir, name)) for img, name in zip(images, names)]


def show_and_save_images(grid, titles, out_name="result.png", figSize=(12,6), out_dir=OUTPUT_DIR, display=True):
    """
    grid: list of numpy images (H,W,3) or (H,W)
    titles: list of strings
    Saves to <out_dir>/out_name and optionally displays using matplotlib.
    """
    n = len(grid)
    cols = min(3, n)
    rows = (n + cols - 1)//cols
    fig = plt.figure(figsize=figSize)
    for i, (img, title) in enumerate(zip(grid, titles)):
        plt.subplot(rows, cols, i+1)
        if img.ndim == 2:
            plt.imshow(img, cmap='gray', vmin=0, vmax=255)
        else:
            plt.imshow(np.uint8(np.clip(img, 0, 255)))
        plt.title(title)
        plt.axis('off')
    os.makedirs(out_dir, exist_ok=True)
    outPath = os.path.join(out_dir, out_name)
    plt.tight_layout()
    try:
        plt.savefig(outPath, bbox_inches='tight')
    except (OSError, ValueError) as exc:
        plt.close(fig)
        raise ImageWriteError(f"Couldn't write preview {outPath}: {exc}") from exc
    if display:
        plt.show()
    plt.close(fig)
    return outPath
