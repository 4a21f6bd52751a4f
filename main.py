"""
Command line for the Huffman file compressor.
"""

import argparse
import logging
import sys

from file_compressor import FileCompressor


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='huffproc',
        description='Huffman file compressor',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  huffproc compress notes.txt
  huffproc compress notes.txt -o notes.bin
  huffproc decompress notes.txt.hf -o restored.txt
  huffproc -v decompress notes.txt.hf
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Log debug details')

    subparsers = parser.add_subparsers(dest='command', help='Command')

    compress_parser = subparsers.add_parser('compress', help='Compress a file')
    compress_parser.add_argument('file', help='File to compress')
    compress_parser.add_argument('-o', '--output', help='Output path (default: FILE.hf)')

    decompress_parser = subparsers.add_parser('decompress', help='Decompress a file')
    decompress_parser.add_argument('file', help='File to decompress')
    decompress_parser.add_argument('-o', '--output', help='Output path (default: FILE without .hf)')

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(name)s: %(message)s',
    )

    compressor = FileCompressor()

    try:
        if args.command == 'compress':
            print(f"Compressing {args.file}...", end=" ")
            stats = compressor.compress_file(args.file, args.output)
            print(f"OK ({stats.original_size} -> {stats.compressed_size} bytes, {stats.ratio:.1f}%)")

        elif args.command == 'decompress':
            print(f"Decompressing {args.file}...", end=" ")
            stats = compressor.decompress_file(args.file, args.output)
            print(f"OK ({stats.compressed_size} -> {stats.original_size} bytes)")

    except (ValueError, OSError) as e:
        print("FAILED")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
