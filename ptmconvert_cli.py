# CLI entry point - convert a PTM file into coeffH.png, coeffL.png and rgb.png

import argparse
import logging
import os
import sys

from decompressor import load_ptm, ptm_to_images
from image_io import IMAGE_TITLES, OUTPUT_DIR, save_images, show_and_save_images
from ptm_errors import PTMError
from ptm_utils import compute_compression_ratio, format_info


def build_parser():
    ap = argparse.ArgumentParser(
        prog="ptmconvert",
        description="Convert an LRGB Polynomial Texture Map into three PNG images.",
    )
    ap.add_argument("filename", help="PTM 1.2 file (PTM_FORMAT_LRGB or PTM_FORMAT_JPEG_LRGB)")
    ap.add_argument("-o", "--output-dir", default=OUTPUT_DIR, help=f"Output directory (default: {OUTPUT_DIR})")
    ap.add_argument("-j", "--workers", type=int, default=1, help="Threads used to decode compressed planes")
    ap.add_argument("--preview", action="store_true", help="Also save a montage of the three images")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


def convert(path, out_dir=OUTPUT_DIR, workers=1, preview=False):
    ptm = load_ptm(path, workers=workers)
    images = ptm_to_images(ptm)
    written = save_images(images, out_dir)
    if preview:
        base = os.path.splitext(os.path.basename(path))[0]
        written.append(show_and_save_images(list(images), list(IMAGE_TITLES),
                                            out_name=f"{base}_planes.png", out_dir=out_dir, display=False))
    return ptm, written


def main(argv=None):
    try:
        args = build_parser().parse_args(argv)
    except SystemExit as exc:
        # argparse has already printed usage or help; every failure exits 1
        return 0 if exc.code in (0, None) else 1
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        ptm, written = convert(args.filename, args.output_dir, args.workers, args.preview)
    except PTMError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    for path in written:
        print("Saved:", path)
    for line in format_info(ptm.header):
        print(line)
    if ptm.compression is not None:
        ratio, orig_bytes, comp_bytes = compute_compression_ratio(ptm.header, ptm.compression)
        print(f"Compression ratio: {ratio:.3f} ({orig_bytes} -> {comp_bytes} bytes)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
