"""
mkcbt bundles image files into a comic book archive (.cbt).

Each input becomes a sequentially numbered ustar entry. Images can optionally
be converted to AVIF by the external `avifenc` tool; conversions run
concurrently while their results are written to the archive in input order.
"""

__version__ = "1.0.0"
