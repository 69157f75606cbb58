"""
Image conversion and archive format settings.

The conversion target is fixed to AVIF through the external `avifenc` tool.
Archive constants describe the ustar layout emitted by the archive writer.
"""

# --- Conversion ---

# Extension (with leading dot) given to converted entries. Inputs already
# carrying this extension are copied as-is.
AVIF_EXTENSION = ".avif"

# Base name of the external encoder executable.
AVIF_ENCODER_NAME = "avifenc"


# --- Archive Layout ---

BLOCK_SIZE = 512

# Two all-zero blocks terminate the archive.
END_OF_ARCHIVE = bytes(BLOCK_SIZE * 2)

# Historical ustar name field width.
MAX_NAME_LENGTH = 100

# Largest value an 11-digit octal header field (size, mtime) can hold.
MAX_OCTAL_11 = 8**11 - 1

ENTRY_MODE = b"0000444"
ENTRY_OWNER_ID = b"0000000"
ENTRY_GROUP_ID = b"0000000"
REGULAR_FILE_TYPE = b"0"
USTAR_MAGIC = b"ustar"
USTAR_VERSION = b"00"
