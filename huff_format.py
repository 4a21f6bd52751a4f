"""
Defines the compressed stream constants, the magic header and format errors.
"""

from bitio import BitInputStream, BitOutputStream, EOF


BITS_PER_WORD = 8
BITS_PER_INT = 32
ALPH_SIZE = 1 << BITS_PER_WORD
PSEUDO_EOF = ALPH_SIZE
SYMBOL_BITS = BITS_PER_WORD + 1

HUFF_NUMBER = 0xFACE8200
HUFF_TREE = HUFF_NUMBER | 1


class HuffException(ValueError):
    pass


class BadMagicError(HuffException):
    def __init__(self, magic: int):
        self.magic = magic
        if magic == EOF:
            super().__init__("Invalid magic number: stream too short")
        else:
            super().__init__(f"Invalid magic number: {magic:#010x}")


class TruncatedTreeError(HuffException):
    pass


class MalformedTreeError(HuffException):
    pass


class MissingTerminatorError(HuffException):
    pass


def write_magic(stream: BitOutputStream):
    stream.write_bits(BITS_PER_INT, HUFF_TREE)


def read_magic(stream: BitInputStream) -> int:
    magic = stream.read_bits(BITS_PER_INT)
    if magic != HUFF_TREE:
        raise BadMagicError(magic)
    return magic
