"""
File-level compression and decompression on top of HuffmanCompressor.
"""

import io
import logging
import os
from typing import Optional

from bitio import BitInputStream, BitOutputStream
from compressor import HuffmanCompressor, CompressionStats


logger = logging.getLogger(__name__)

COMPRESSED_SUFFIX = '.hf'
DECOMPRESSED_SUFFIX = '.unhf'


class FileCompressor:
    def __init__(self):
        self.compressor = HuffmanCompressor()

    def compress_file(self, file_path: str, output_path: Optional[str] = None) -> CompressionStats:
        if output_path is None:
            output_path = file_path + COMPRESSED_SUFFIX

        if os.path.abspath(output_path) == os.path.abspath(file_path):
            raise ValueError(f"Output path is the input file: {file_path}")

        logger.debug("compressing %s -> %s", file_path, output_path)

        with BitInputStream(open(file_path, 'rb')) as bit_in, \
                open(output_path, 'wb') as dst, BitOutputStream(dst) as bit_out:
            stats = self.compressor.compress(bit_in, bit_out)

        stats.original_size = os.path.getsize(file_path)
        return stats

    def decompress_file(self, file_path: str, output_path: Optional[str] = None) -> CompressionStats:
        if output_path is None:
            output_path = default_decompressed_path(file_path)

        logger.debug("decompressing %s -> %s", file_path, output_path)

        # decode fully before touching the output file
        buffer = io.BytesIO()
        with BitInputStream(open(file_path, 'rb')) as bit_in:
            stats = self.compressor.decompress(bit_in, BitOutputStream(buffer))

        with open(output_path, 'wb') as dst:
            dst.write(buffer.getvalue())

        stats.compressed_size = os.path.getsize(file_path)
        return stats


def default_decompressed_path(file_path: str) -> str:
    if file_path.endswith(COMPRESSED_SUFFIX) and len(file_path) > len(COMPRESSED_SUFFIX):
        return file_path[:-len(COMPRESSED_SUFFIX)]
    return file_path + DECOMPRESSED_SUFFIX
