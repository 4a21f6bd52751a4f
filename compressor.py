"""
Huffman compression and decompression of byte streams.

Compression makes two passes over the input: the first counts byte
frequencies, the second re-reads the rewound input and writes each byte's code.
"""

import io
import logging
from dataclasses import dataclass

from bitio import BitInputStream, BitOutputStream, EOF
from huff_format import (
    BITS_PER_WORD, PSEUDO_EOF, MissingTerminatorError,
    write_magic, read_magic,
)
from huffman import (
    HuffmanNode, count_frequencies, build_tree, make_encodings,
    write_tree, read_tree,
)


logger = logging.getLogger(__name__)


@dataclass
class CompressionStats:
    original_size: int
    compressed_size: int

    @property
    def ratio(self) -> float:
        if self.original_size == 0:
            return 0.0
        return self.compressed_size / self.original_size * 100


def _byte_count(bits: int) -> int:
    return (bits + 7) // 8


class HuffmanCompressor:
    def compress(self, bit_in: BitInputStream, bit_out: BitOutputStream) -> CompressionStats:
        bit_in.reset()
        counts = count_frequencies(bit_in)
        bit_in.reset()

        root = build_tree(counts)
        codes = {symbol: (len(code), int(code, 2))
                 for symbol, code in make_encodings(root).items()}

        write_magic(bit_out)
        write_tree(root, bit_out)
        logger.debug("header written: %d bits", bit_out.bits_written)

        symbols = 0
        word = bit_in.read_bits(BITS_PER_WORD)
        while word != EOF:
            bit_out.write_bits(*codes[word])
            symbols += 1
            word = bit_in.read_bits(BITS_PER_WORD)

        bit_out.write_bits(*codes[PSEUDO_EOF])
        bit_out.close()

        logger.debug("encoded %d symbols into %d bits", symbols, bit_out.bits_written)
        return CompressionStats(symbols, _byte_count(bit_out.bits_written))

    def decompress(self, bit_in: BitInputStream, bit_out: BitOutputStream) -> CompressionStats:
        read_magic(bit_in)
        root = read_tree(bit_in)
        logger.debug("header read: %d bits", bit_in.bits_read)

        decoded = self._walk(root, bit_in)
        for byte in decoded:
            bit_out.write_bits(BITS_PER_WORD, byte)
        bit_out.close()
        symbols = len(decoded)

        logger.debug("decoded %d symbols from %d bits", symbols, bit_in.bits_read)
        return CompressionStats(symbols, _byte_count(bit_in.bits_read))

    @staticmethod
    def _walk(root: HuffmanNode, bit_in: BitInputStream) -> bytearray:
        # nothing reaches the output until PSEUDO_EOF is seen
        decoded = bytearray()
        current = root

        while True:
            bit = bit_in.read_bits(1)
            if bit == EOF:
                raise MissingTerminatorError(
                    f"Input ended after {len(decoded)} symbols without PSEUDO_EOF")

            current = current.right if bit == 1 else current.left

            if current.is_leaf():
                if current.symbol == PSEUDO_EOF:
                    return decoded
                decoded.append(current.symbol)
                current = root


def compress_data(data: bytes) -> bytes:
    buffer = io.BytesIO()
    HuffmanCompressor().compress(BitInputStream(io.BytesIO(data)),
                                 BitOutputStream(buffer))
    return buffer.getvalue()


def decompress_data(compressed: bytes) -> bytes:
    buffer = io.BytesIO()
    HuffmanCompressor().decompress(BitInputStream(io.BytesIO(compressed)),
                                   BitOutputStream(buffer))
    return buffer.getvalue()
