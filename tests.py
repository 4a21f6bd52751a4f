import io
import os
import random
import shutil
import sys
import tempfile
import unittest
from contextlib import redirect_stdout, redirect_stderr

from bitio import BitInputStream, BitOutputStream, EOF
from huff_format import (
    HUFF_TREE, PSEUDO_EOF, ALPH_SIZE,
    HuffException, BadMagicError, TruncatedTreeError, MalformedTreeError,
    MissingTerminatorError,
)
from huffman import (
    HuffmanNode, count_frequencies, build_tree, make_encodings,
    write_tree, read_tree,
)
from compressor import HuffmanCompressor, compress_data, decompress_data
from file_compressor import FileCompressor, default_decompressed_path
import main


def counts_of(data: bytes):
    return count_frequencies(BitInputStream(io.BytesIO(data)))


def leaves(node: HuffmanNode):
    if node.is_leaf():
        return [node.symbol]
    return leaves(node.left) + leaves(node.right)


def same_shape(a: HuffmanNode, b: HuffmanNode) -> bool:
    if a.is_leaf() or b.is_leaf():
        return a.is_leaf() and b.is_leaf() and a.symbol == b.symbol
    return same_shape(a.left, b.left) and same_shape(a.right, b.right)


def assert_prefix_free(test: unittest.TestCase, codes):
    values = list(codes.values())
    for i, a in enumerate(values):
        for j, b in enumerate(values):
            if i != j:
                test.assertFalse(b.startswith(a), f"{a} is a prefix of {b}")


class TestBitStreams(unittest.TestCase):
    def test_write_then_read(self):
        buffer = io.BytesIO()
        out = BitOutputStream(buffer)
        out.write_bits(1, 1)
        out.write_bits(9, 256)
        out.write_bits(32, HUFF_TREE)
        out.close()

        stream = BitInputStream(io.BytesIO(buffer.getvalue()))
        self.assertEqual(stream.read_bits(1), 1)
        self.assertEqual(stream.read_bits(9), 256)
        self.assertEqual(stream.read_bits(32), HUFF_TREE)
        self.assertEqual(stream.bits_read, 42)

    def test_msb_first_and_zero_padding(self):
        buffer = io.BytesIO()
        out = BitOutputStream(buffer)
        out.write_bits(3, 0b101)
        out.close()
        self.assertEqual(buffer.getvalue(), bytes([0b10100000]))
        self.assertEqual(out.bits_written, 3)

    def test_close_is_idempotent(self):
        buffer = io.BytesIO()
        out = BitOutputStream(buffer)
        out.write_bits(8, 0x41)
        out.close()
        out.close()
        self.assertEqual(buffer.getvalue(), b'A')
        with self.assertRaises(ValueError):
            out.write_bits(1, 1)

    def test_codes_longer_than_a_word(self):
        buffer = io.BytesIO()
        out = BitOutputStream(buffer)
        value = (1 << 39) | 0b1011
        out.write_bits(40, value)
        out.close()

        stream = BitInputStream(io.BytesIO(buffer.getvalue()))
        self.assertEqual(stream.read_bits(8), 0b10000000)
        self.assertEqual(stream.read_bits(32), 0b1011)

    def test_eof_when_not_enough_bits(self):
        stream = BitInputStream(io.BytesIO(b'\xff'))
        self.assertEqual(stream.read_bits(4), 0xF)
        self.assertEqual(stream.read_bits(8), EOF)
        self.assertEqual(stream.read_bits(1), EOF)

    def test_reset_rewinds_to_start(self):
        raw = io.BytesIO(b'\x00XYZ')
        raw.read(1)
        stream = BitInputStream(raw)
        self.assertEqual(stream.read_bits(8), ord('X'))
        self.assertEqual(stream.read_bits(8), ord('Y'))
        stream.reset()
        self.assertEqual(stream.bits_read, 0)
        self.assertEqual(stream.read_bits(8), ord('X'))

    def test_context_managers(self):
        raw = io.BytesIO(b'\x5a')
        with BitInputStream(raw) as stream:
            self.assertEqual(stream.read_bits(8), 0x5A)
        self.assertTrue(raw.closed)

        buffer = io.BytesIO()
        with BitOutputStream(buffer) as out:
            out.write_bits(2, 0b11)
        self.assertTrue(out.closed)
        self.assertFalse(buffer.closed)
        self.assertEqual(buffer.getvalue(), bytes([0b11000000]))

    def test_invalid_widths(self):
        with self.assertRaises(ValueError):
            BitInputStream(io.BytesIO(b'')).read_bits(0)
        with self.assertRaises(ValueError):
            BitOutputStream(io.BytesIO()).write_bits(-1, 0)


class TestHuffmanTree(unittest.TestCase):
    def test_count_frequencies(self):
        counts = counts_of(b"AAB")
        self.assertEqual(len(counts), ALPH_SIZE)
        self.assertEqual(counts[65], 2)
        self.assertEqual(counts[66], 1)
        self.assertEqual(sum(counts), 3)

    def test_count_frequencies_empty(self):
        self.assertEqual(counts_of(b""), [0] * ALPH_SIZE)

    def test_scenario_aab(self):
        root = build_tree(counts_of(bytes([65, 65, 66])))
        self.assertEqual(root.weight, 4)

        codes = make_encodings(root)
        self.assertEqual(codes, {65: '0', 66: '10', PSEUDO_EOF: '11'})

    def test_single_symbol_gives_two_leaves(self):
        root = build_tree(counts_of(b"A" * 100))
        self.assertEqual(sorted(leaves(root)), [65, PSEUDO_EOF])
        self.assertTrue(root.left.is_leaf())
        self.assertTrue(root.right.is_leaf())

    def test_empty_input_keeps_two_leaves(self):
        root = build_tree([0] * ALPH_SIZE)
        self.assertEqual(sorted(leaves(root)), [0, PSEUDO_EOF])
        self.assertEqual(len(make_encodings(root)[PSEUDO_EOF]), 1)

    def test_every_symbol_present(self):
        root = build_tree([1] * ALPH_SIZE)
        codes = make_encodings(root)
        self.assertEqual(len(codes), ALPH_SIZE + 1)
        self.assertTrue(all(codes.values()))
        assert_prefix_free(self, codes)

    def test_prefix_free_on_text(self):
        data = b"Lorem ipsum dolor sit amet, consectetur adipiscing elit" * 7
        codes = make_encodings(build_tree(counts_of(data)))
        self.assertEqual(set(codes), set(data) | {PSEUDO_EOF})
        assert_prefix_free(self, codes)

    def test_doubling_weights_give_long_codes(self):
        counts = [0] * ALPH_SIZE
        for symbol in range(40):
            counts[symbol] = 1 << symbol
        codes = make_encodings(build_tree(counts))
        self.assertEqual(max(len(c) for c in codes.values()), 40)
        assert_prefix_free(self, codes)

        long_codes = [c for c in codes.values() if len(c) > 32]
        self.assertTrue(long_codes)

        buffer = io.BytesIO()
        with BitOutputStream(buffer) as out:
            for code in long_codes:
                out.write_bits(len(code), int(code, 2))

        stream = BitInputStream(io.BytesIO(buffer.getvalue()))
        for code in long_codes:
            bits = ''.join(str(stream.read_bits(1)) for _ in code)
            self.assertEqual(bits, code)

    def test_frequent_symbols_get_shorter_codes(self):
        codes = make_encodings(build_tree(counts_of(b"a" * 50 + b"b" * 10 + b"c")))
        self.assertLess(len(codes[ord('a')]), len(codes[ord('c')]))

    def test_build_is_deterministic(self):
        counts = counts_of(b"abracadabra")
        self.assertEqual(make_encodings(build_tree(counts)),
                         make_encodings(build_tree(list(counts))))

    def test_invalid_counts(self):
        with self.assertRaises(ValueError):
            build_tree([1, 2, 3])
        counts = [0] * ALPH_SIZE
        counts[7] = -1
        with self.assertRaises(ValueError):
            build_tree(counts)

    def test_leaf_root_has_no_codes(self):
        with self.assertRaises(ValueError):
            make_encodings(HuffmanNode(symbol=65, weight=1))


class TestTreeCodec(unittest.TestCase):
    def write(self, root: HuffmanNode, trailer_bits: int = 0, trailer: int = 0) -> bytes:
        buffer = io.BytesIO()
        out = BitOutputStream(buffer)
        write_tree(root, out)
        out.write_bits(trailer_bits, trailer)
        out.close()
        return buffer.getvalue()

    def test_header_bits_for_aab(self):
        root = build_tree(counts_of(b"AAB"))
        buffer = io.BytesIO()
        out = BitOutputStream(buffer)
        write_tree(root, out)
        # 2 internal nodes, 3 leaves of 1 + 9 bits
        self.assertEqual(out.bits_written, 2 + 3 * 10)

    def test_read_mirrors_write(self):
        root = build_tree(counts_of(b"The quick brown fox jumps over the lazy dog"))
        parsed = read_tree(BitInputStream(io.BytesIO(self.write(root))))
        self.assertTrue(same_shape(root, parsed))
        self.assertEqual(make_encodings(root), make_encodings(parsed))

    def test_header_is_self_delimiting(self):
        for data in (b"", b"A", b"AAB", bytes(range(256)), b"mississippi" * 3):
            root = build_tree(counts_of(data))
            stream = BitInputStream(io.BytesIO(self.write(root, 7, 0b1011001)))
            read_tree(stream)
            consumed = stream.bits_read
            self.assertEqual(stream.read_bits(7), 0b1011001)

            out = BitOutputStream(io.BytesIO())
            write_tree(root, out)
            self.assertEqual(consumed, out.bits_written)

    def test_truncated_header(self):
        root = build_tree(counts_of(bytes(range(256))))
        encoded = self.write(root)
        with self.assertRaises(TruncatedTreeError):
            read_tree(BitInputStream(io.BytesIO(encoded[:len(encoded) // 2])))
        with self.assertRaises(TruncatedTreeError):
            read_tree(BitInputStream(io.BytesIO(b"")))

    def test_symbol_out_of_range(self):
        bad = HuffmanNode(left=HuffmanNode(symbol=300), right=HuffmanNode(symbol=PSEUDO_EOF))
        with self.assertRaises(MalformedTreeError):
            read_tree(BitInputStream(io.BytesIO(self.write(bad))))

    def test_single_leaf_header_rejected(self):
        with self.assertRaises(MalformedTreeError):
            read_tree(BitInputStream(io.BytesIO(self.write(HuffmanNode(symbol=PSEUDO_EOF)))))

    def test_nesting_too_deep(self):
        with self.assertRaises(MalformedTreeError):
            read_tree(BitInputStream(io.BytesIO(b"\x00" * 40)))

    def test_errors_are_value_errors(self):
        self.assertTrue(issubclass(TruncatedTreeError, HuffException))
        self.assertTrue(issubclass(HuffException, ValueError))


class TestHuffmanCompressor(unittest.TestCase):
    def roundtrip(self, data: bytes):
        self.assertEqual(decompress_data(compress_data(data)), data)

    def test_empty(self):
        compressed = compress_data(b"")
        self.assertGreater(len(compressed), 4)
        self.assertEqual(decompress_data(compressed), b"")

    def test_scenario_aab(self):
        compressed = compress_data(bytes([65, 65, 66]))
        # 32 magic + 32 tree + 4 payload + 2 terminator = 70 bits
        self.assertEqual(len(compressed), 9)
        self.assertEqual(decompress_data(compressed), bytes([65, 65, 66]))

    def test_single_byte(self):
        self.roundtrip(b"A")

    def test_single_symbol_repeated(self):
        data = b"A" * 10000
        compressed = compress_data(data)
        self.assertLess(len(compressed), len(data) // 4)
        self.assertEqual(decompress_data(compressed), data)

    def test_all_bytes(self):
        self.roundtrip(bytes(range(256)))
        self.roundtrip(bytes(range(255, -1, -1)) * 4)

    def test_random_data(self):
        rng = random.Random(42)
        self.roundtrip(bytes(rng.randint(0, 255) for _ in range(5000)))

    def test_small_inputs(self):
        rng = random.Random(7)
        for n in (1, 2, 3, 4, 5):
            self.roundtrip(bytes(rng.randint(0, 255) for _ in range(n)))

    def test_text(self):
        self.roundtrip("Съешь же ещё этих мягких французских булок".encode('utf-8') * 20)

    def test_magic_header(self):
        self.assertEqual(compress_data(b"hello")[:4], b"\xfa\xce\x82\x01")

    def test_reproducible_output(self):
        data = b"abracadabra" * 30
        self.assertEqual(compress_data(data), compress_data(data))

    def test_compress_rewinds_partially_read_input(self):
        data = b"partially consumed input"
        stream = BitInputStream(io.BytesIO(data))
        stream.read_bits(8)

        buffer = io.BytesIO()
        HuffmanCompressor().compress(stream, BitOutputStream(buffer))
        self.assertEqual(decompress_data(buffer.getvalue()), data)

    def test_stats(self):
        data = b"statistics " * 40
        buffer = io.BytesIO()
        stats = HuffmanCompressor().compress(BitInputStream(io.BytesIO(data)),
                                             BitOutputStream(buffer))
        self.assertEqual(stats.original_size, len(data))
        self.assertEqual(stats.compressed_size, len(buffer.getvalue()))
        self.assertLess(stats.ratio, 100)

        out = io.BytesIO()
        stats = HuffmanCompressor().decompress(BitInputStream(io.BytesIO(buffer.getvalue())),
                                               BitOutputStream(out))
        self.assertEqual(stats.original_size, len(data))

    def test_bad_magic_writes_nothing(self):
        out = io.BytesIO()
        with self.assertRaises(BadMagicError) as ctx:
            HuffmanCompressor().decompress(BitInputStream(io.BytesIO(b"\x00" * 16)),
                                           BitOutputStream(out))
        self.assertEqual(ctx.exception.magic, 0)
        self.assertEqual(out.getvalue(), b"")

    def test_corrupted_header(self):
        compressed = bytearray(compress_data(b"Hello World" * 50))
        compressed[0] ^= 0xFF
        with self.assertRaises(BadMagicError):
            decompress_data(bytes(compressed))

    def test_too_short_for_magic(self):
        with self.assertRaises(BadMagicError):
            decompress_data(b"\xfa\xce")

    def test_legacy_magic_rejected(self):
        with self.assertRaises(BadMagicError):
            decompress_data(b"\xfa\xce\x82\x00" + compress_data(b"abc")[4:])

    def test_truncated_stream(self):
        compressed = compress_data(b"This is a test" * 100)
        for cut in (1, 3, len(compressed) // 2):
            with self.assertRaises(MissingTerminatorError):
                decompress_data(compressed[:-cut])

    def test_truncated_stream_writes_nothing(self):
        compressed = compress_data(bytes(range(256)) * 200)
        out = io.BytesIO()
        with self.assertRaises(MissingTerminatorError):
            HuffmanCompressor().decompress(BitInputStream(io.BytesIO(compressed[:-50])),
                                           BitOutputStream(out))
        self.assertEqual(out.getvalue(), b"")

    def test_truncated_inside_tree(self):
        compressed = compress_data(bytes(range(256)))
        with self.assertRaises(TruncatedTreeError):
            decompress_data(compressed[:10])


class TestFileCompressor(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.compressor = FileCompressor()

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def path(self, name: str) -> str:
        return os.path.join(self.temp_dir, name)

    def test_compress_and_decompress_file(self):
        source = self.path("test.txt")
        with open(source, 'wb') as f:
            f.write(b"Hello World! " * 100)

        stats = self.compressor.compress_file(source)
        self.assertTrue(os.path.isfile(source + ".hf"))
        self.assertEqual(stats.original_size, 1300)
        self.assertEqual(stats.compressed_size, os.path.getsize(source + ".hf"))
        self.assertLess(stats.compressed_size, stats.original_size)

        restored = self.path("restored.txt")
        self.compressor.decompress_file(source + ".hf", restored)
        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), b"Hello World! " * 100)

    def test_empty_file(self):
        source = self.path("empty.bin")
        open(source, 'wb').close()

        self.compressor.compress_file(source, self.path("empty.hf"))
        self.compressor.decompress_file(self.path("empty.hf"), self.path("out.bin"))
        self.assertEqual(os.path.getsize(self.path("out.bin")), 0)

    def test_malformed_file_leaves_no_output(self):
        source = self.path("garbage.hf")
        with open(source, 'wb') as f:
            f.write(b"not a compressed file")

        with self.assertRaises(BadMagicError):
            self.compressor.decompress_file(source)
        self.assertFalse(os.path.exists(self.path("garbage")))

    def test_truncated_file_leaves_no_output(self):
        source = self.path("data.bin")
        with open(source, 'wb') as f:
            f.write(b"Content of file\n" * 50)
        self.compressor.compress_file(source, self.path("data.hf"))

        with open(self.path("data.hf"), 'rb') as f:
            compressed = f.read()
        with open(self.path("cut.hf"), 'wb') as f:
            f.write(compressed[:-2])

        with self.assertRaises(MissingTerminatorError):
            self.compressor.decompress_file(self.path("cut.hf"))
        self.assertFalse(os.path.exists(self.path("cut")))

    def test_output_same_as_input_rejected(self):
        source = self.path("same.txt")
        with open(source, 'wb') as f:
            f.write(b"keep me")

        with self.assertRaises(ValueError):
            self.compressor.compress_file(source, source)
        with open(source, 'rb') as f:
            self.assertEqual(f.read(), b"keep me")

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            self.compressor.compress_file(self.path("missing.txt"))

    def test_default_paths(self):
        self.assertEqual(default_decompressed_path("a/b.txt.hf"), "a/b.txt")
        self.assertEqual(default_decompressed_path("a/b.bin"), "a/b.bin.unhf")


class TestMain(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_compress_then_decompress(self):
        source = os.path.join(self.temp_dir, "file1.txt")
        restored = os.path.join(self.temp_dir, "file1.out")
        with open(source, 'wb') as f:
            f.write(b"Content of file 1\n" * 50)

        output = io.StringIO()
        with redirect_stdout(output):
            main.main(['compress', source])
            main.main(['decompress', source + '.hf', '-o', restored])

        self.assertIn("OK", output.getvalue())
        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), b"Content of file 1\n" * 50)

    def test_error_exit_status(self):
        source = os.path.join(self.temp_dir, "bad.hf")
        with open(source, 'wb') as f:
            f.write(b"\x00" * 8)

        errors = io.StringIO()
        with redirect_stdout(io.StringIO()), redirect_stderr(errors):
            with self.assertRaises(SystemExit) as ctx:
                main.main(['decompress', source])

        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("Invalid magic number", errors.getvalue())

    def test_no_command_prints_help(self):
        output = io.StringIO()
        with redirect_stdout(output):
            main.main([])
        self.assertIn("usage", output.getvalue())


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestBitStreams))
    suite.addTests(loader.loadTestsFromTestCase(TestHuffmanTree))
    suite.addTests(loader.loadTestsFromTestCase(TestTreeCodec))
    suite.addTests(loader.loadTestsFromTestCase(TestHuffmanCompressor))
    suite.addTests(loader.loadTestsFromTestCase(TestFileCompressor))
    suite.addTests(loader.loadTestsFromTestCase(TestMain))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    sys.exit(run_tests())
