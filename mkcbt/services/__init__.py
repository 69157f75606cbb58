"""
Services Package for mkcbt.

Services perform one concrete task each and are coordinated by the job pipeline:

- **Archive Writer (`TarArchiveWriter`):** streams entries into a ustar
  archive, one header, payload and padding at a time, and terminates it.

- **Image Encoder (`AvifEncoder`):** starts the external `avifenc` process for a
  single input/output pair and hands back the process handle.

- **Input Collection (`collect_inputs`):** validates the command-line inputs,
  expands a single input directory, and sorts the result.
"""
from .archive_writer import TarArchiveWriter
from .image_encoder import AvifEncoder
from .input_collection_service import collect_inputs

__all__ = ["AvifEncoder", "TarArchiveWriter", "collect_inputs"]
