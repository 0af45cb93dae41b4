# helper functions (header info, compression ratio)

"""
Helper utilities: human readable header summary and compression ratio of a
compressed PTM payload.
"""

def format_info(header):
    """Lines printed after a successful export: size, scale and bias."""
    return [
        f"Width: {header.width}",
        f"Height: {header.height}",
        "Scale coefficients: " + " ".join(f"{s:g}" for s in header.scale),
        "Bias coefficients: " + " ".join(str(b) for b in header.bias),
    ]

def compute_compression_ratio(header, info):
    orig_bytes = header.num_pixels * header.epp
    comp_bytes = info.payload_size if info is not None else orig_bytes
    ratio = orig_bytes / comp_bytes if comp_bytes > 0 else float('inf')
    return ratio, orig_bytes, comp_bytes
