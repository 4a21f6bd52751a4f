"""
Huffman code construction over byte symbols plus the PSEUDO_EOF sentinel:
frequency counting, tree building, code derivation and the tree header codec.
"""

import heapq
import logging
from typing import Dict, List, Optional

from bitio import BitInputStream, BitOutputStream, EOF
from huff_format import (
    ALPH_SIZE, BITS_PER_WORD, PSEUDO_EOF, SYMBOL_BITS,
    TruncatedTreeError, MalformedTreeError,
)


logger = logging.getLogger(__name__)

MAX_DEPTH = ALPH_SIZE


class HuffmanNode:
    def __init__(self, symbol: int = 0, weight: int = 0,
                 left: Optional['HuffmanNode'] = None,
                 right: Optional['HuffmanNode'] = None,
                 order: int = 0):
        self.symbol = symbol
        self.weight = weight
        self.left = left
        self.right = right
        self.order = order

    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def __lt__(self, other):
        # equal weights pop in creation order
        return (self.weight, self.order) < (other.weight, other.order)


def count_frequencies(stream: BitInputStream) -> List[int]:
    """
    Reads 8-bit words until EOF and counts each value.
    The stream is left exhausted; the caller rewinds it.
    """
    counts = [0] * ALPH_SIZE

    word = stream.read_bits(BITS_PER_WORD)
    while word != EOF:
        counts[word] += 1
        word = stream.read_bits(BITS_PER_WORD)

    return counts


def build_tree(counts: List[int]) -> HuffmanNode:
    """
    Greedy Huffman merge over every symbol with a non-zero count plus
    PSEUDO_EOF (weight 1). The first node popped becomes the left child.

    Ties are broken by creation order: leaves are created in ascending
    symbol order with PSEUDO_EOF last, merged nodes after them.
    """
    if len(counts) != ALPH_SIZE:
        raise ValueError(f"Expected {ALPH_SIZE} counts, got {len(counts)}")
    if any(c < 0 for c in counts):
        raise ValueError("Frequency counts must be non-negative")

    symbols = [s for s in range(ALPH_SIZE) if counts[s] > 0]
    if not symbols:
        # empty input: keep two leaves so PSEUDO_EOF gets a real code
        symbols = [0]

    heap = [HuffmanNode(symbol=s, weight=counts[s], order=i)
            for i, s in enumerate(symbols)]
    heap.append(HuffmanNode(symbol=PSEUDO_EOF, weight=1, order=len(heap)))
    heapq.heapify(heap)

    order = len(heap)
    leaves = len(heap)
    while len(heap) > 1:
        left = heapq.heappop(heap)
        right = heapq.heappop(heap)

        parent = HuffmanNode(weight=left.weight + right.weight,
                             left=left, right=right, order=order)
        order += 1
        heapq.heappush(heap, parent)

    root = heap[0]
    logger.debug("built tree: %d leaves, total weight %d", leaves, root.weight)
    return root


def make_encodings(root: HuffmanNode) -> Dict[int, str]:
    codes: Dict[int, str] = {}

    def traverse(node: HuffmanNode, path: str):
        if node.is_leaf():
            if not path:
                raise ValueError("Tree root is a leaf; codes would be empty")
            codes[node.symbol] = path
            return

        traverse(node.left, path + '0')
        traverse(node.right, path + '1')

    traverse(root, '')
    return codes


def write_tree(root: HuffmanNode, stream: BitOutputStream):
    """Pre-order: '0' per internal node, '1' + 9-bit symbol per leaf."""
    if root.is_leaf():
        stream.write_bits(1, 1)
        stream.write_bits(SYMBOL_BITS, root.symbol)
        return

    stream.write_bits(1, 0)
    write_tree(root.left, stream)
    write_tree(root.right, stream)


def read_tree(stream: BitInputStream) -> HuffmanNode:
    root = _read_node(stream, 0)
    if root.is_leaf():
        raise MalformedTreeError("Tree header holds a single leaf")
    return root


def _read_node(stream: BitInputStream, depth: int) -> HuffmanNode:
    if depth > MAX_DEPTH:
        raise MalformedTreeError(f"Tree header deeper than {MAX_DEPTH} levels")

    bit = stream.read_bits(1)
    if bit == EOF:
        raise TruncatedTreeError("Input ended inside the tree header")

    if bit == 0:
        left = _read_node(stream, depth + 1)
        right = _read_node(stream, depth + 1)
        return HuffmanNode(left=left, right=right)

    symbol = stream.read_bits(SYMBOL_BITS)
    if symbol == EOF:
        raise TruncatedTreeError("Input ended inside a tree leaf")
    if symbol > PSEUDO_EOF:
        raise MalformedTreeError(f"Invalid symbol in tree header: {symbol}")

    return HuffmanNode(symbol=symbol)
