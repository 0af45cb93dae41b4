# Exception types raised while loading and exporting PTM files

"""
Every failure aborts the whole load/export; callers only need to catch PTMError.
"""


class PTMError(Exception):
    """Base class for all PTM loading / exporting errors."""


class PTMIOError(PTMError, OSError):
    """File cannot be opened or read."""


class FormatError(PTMError):
    """Bad magic, malformed token, missing terminator, truncated payload."""


class UnsupportedFormatError(PTMError):
    """Format tag is recognized but not implemented."""


class CodecError(PTMError):
    """A compressed plane could not be decoded into the expected raster."""


class ImageWriteError(PTMError):
    """An output image could not be encoded or written."""
