"""
Bit-granular input and output over binary file objects.
Bits are packed most-significant first within each byte.
"""

import logging
from typing import BinaryIO


logger = logging.getLogger(__name__)

EOF = -1
CHUNK_SIZE = 8192
MAX_WIDTH = 32


class BitInputStream:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.start = stream.tell()
        self.buffer = b''
        self.pos = 0
        self.cur = 0
        self.nbits = 0  # unread bits held in cur (0..7 between reads)
        self.bits_read = 0
        self.exhausted = False

    def _next_byte(self) -> int:
        if self.pos >= len(self.buffer):
            self.buffer = self.stream.read(CHUNK_SIZE)
            self.pos = 0
            if not self.buffer:
                return EOF
        byte = self.buffer[self.pos]
        self.pos += 1
        return byte

    def read_bits(self, width: int) -> int:
        """Return the next ``width`` bits as an unsigned int, or EOF."""
        if not 0 < width <= MAX_WIDTH:
            raise ValueError(f"Invalid bit width: {width}")
        if self.exhausted:
            return EOF

        while self.nbits < width:
            byte = self._next_byte()
            if byte == EOF:
                self.exhausted = True
                return EOF
            self.cur = (self.cur << 8) | byte
            self.nbits += 8

        self.nbits -= width
        value = (self.cur >> self.nbits) & ((1 << width) - 1)
        self.cur &= (1 << self.nbits) - 1
        self.bits_read += width
        return value

    def reset(self):
        logger.debug("rewinding input after %d bits", self.bits_read)
        self.stream.seek(self.start)
        self.buffer = b''
        self.pos = 0
        self.cur = 0
        self.nbits = 0
        self.bits_read = 0
        self.exhausted = False

    def close(self):
        self.stream.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class BitOutputStream:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.buffer = bytearray()
        self.cur = 0
        self.nbits = 0  # bits pending in cur (0..7)
        self.bits_written = 0
        self.closed = False

    def write_bits(self, width: int, value: int):
        """Append the low ``width`` bits of ``value``."""
        if width < 0:
            raise ValueError(f"Invalid bit width: {width}")
        if self.closed:
            raise ValueError("write to closed bit stream")

        self.cur = (self.cur << width) | (value & ((1 << width) - 1))
        self.nbits += width
        self.bits_written += width

        while self.nbits >= 8:
            self.nbits -= 8
            self.buffer.append((self.cur >> self.nbits) & 0xFF)
        self.cur &= (1 << self.nbits) - 1

        if len(self.buffer) >= CHUNK_SIZE:
            self.flush()

    def flush(self):
        if self.buffer:
            self.stream.write(bytes(self.buffer))
            self.buffer.clear()

    def close(self):
        if self.closed:
            return

        if self.nbits > 0:
            self.buffer.append((self.cur << (8 - self.nbits)) & 0xFF)
            self.cur = 0
            self.nbits = 0

        self.flush()
        self.stream.flush()
        self.closed = True
        logger.debug("output closed after %d bits", self.bits_written)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()
