"""BLAKE3 hashing (unkeyed, 256-bit output) in pure Python."""

from __future__ import annotations

import struct
from dataclasses import dataclass

__all__ = ["Blake3", "blake3_hex"]

_MASK = 0xFFFFFFFF
_IV = (
    0x6A09E667,
    0xBB67AE85,
    0x3C6EF372,
    0xA54FF53A,
    0x510E527F,
    0x9B05688C,
    0x1F83D9AB,
    0x5BE0CD19,
)
_MSG_PERMUTATION = (2, 6, 3, 10, 7, 0, 4, 13, 1, 11, 12, 5, 9, 14, 15, 8)
_G_SCHEDULE = (
    (0, 4, 8, 12),
    (1, 5, 9, 13),
    (2, 6, 10, 14),
    (3, 7, 11, 15),
    (0, 5, 10, 15),
    (1, 6, 11, 12),
    (2, 7, 8, 13),
    (3, 4, 9, 14),
)

_CHUNK_START = 1 << 0
_CHUNK_END = 1 << 1
_PARENT = 1 << 2
_ROOT = 1 << 3

_BLOCK_LEN = 64
_CHUNK_LEN = 1024


def _rotr(value: int, shift: int) -> int:
    return ((value >> shift) | (value << (32 - shift))) & _MASK


def _g(state: list[int], a: int, b: int, c: int, d: int, mx: int, my: int) -> None:
    state[a] = (state[a] + state[b] + mx) & _MASK
    state[d] = _rotr(state[d] ^ state[a], 16)
    state[c] = (state[c] + state[d]) & _MASK
    state[b] = _rotr(state[b] ^ state[c], 12)
    state[a] = (state[a] + state[b] + my) & _MASK
    state[d] = _rotr(state[d] ^ state[a], 8)
    state[c] = (state[c] + state[d]) & _MASK
    state[b] = _rotr(state[b] ^ state[c], 7)


def _compress(
    cv: tuple[int, ...],
    block_words: tuple[int, ...],
    counter: int,
    block_len: int,
    flags: int,
) -> list[int]:
    state = [
        *cv,
        *_IV[:4],
        counter & _MASK,
        (counter >> 32) & _MASK,
        block_len,
        flags,
    ]
    message = list(block_words)
    for round_number in range(7):
        for n, (a, b, c, d) in enumerate(_G_SCHEDULE):
            _g(state, a, b, c, d, message[2 * n], message[2 * n + 1])
        if round_number < 6:
            message = [message[i] for i in _MSG_PERMUTATION]
    low, high = state[:8], state[8:]
    return [x ^ y for x, y in zip(low, high)] + [y ^ k for y, k in zip(high, cv)]


def _words(block: bytes | bytearray) -> tuple[int, ...]:
    return struct.unpack("<16I", bytes(block).ljust(_BLOCK_LEN, b"\0"))


@dataclass(frozen=True)
class _Output:
    input_cv: tuple[int, ...]
    block_words: tuple[int, ...]
    counter: int
    block_len: int
    flags: int

    def chaining_value(self) -> tuple[int, ...]:
        return tuple(
            _compress(self.input_cv, self.block_words, self.counter, self.block_len, self.flags)[:8]
        )

    def root_bytes(self) -> bytes:
        words = _compress(
            self.input_cv, self.block_words, 0, self.block_len, self.flags | _ROOT
        )
        return struct.pack("<8I", *words[:8])


def _parent_output(left: tuple[int, ...], right: tuple[int, ...]) -> _Output:
    return _Output(_IV, left + right, 0, _BLOCK_LEN, _PARENT)


class _ChunkState:
    def __init__(self, key: tuple[int, ...], chunk_counter: int) -> None:
        self.cv = key
        self.chunk_counter = chunk_counter
        self.block = bytearray()
        self.blocks_compressed = 0

    def __len__(self) -> int:
        return _BLOCK_LEN * self.blocks_compressed + len(self.block)

    def _start_flag(self) -> int:
        return _CHUNK_START if self.blocks_compressed == 0 else 0

    def update(self, data: memoryview) -> None:
        while data:
            if len(self.block) == _BLOCK_LEN:
                self.cv = tuple(
                    _compress(
                        self.cv,
                        _words(self.block),
                        self.chunk_counter,
                        _BLOCK_LEN,
                        self._start_flag(),
                    )[:8]
                )
                self.blocks_compressed += 1
                self.block = bytearray()
            take = min(_BLOCK_LEN - len(self.block), len(data))
            self.block += data[:take]
            data = data[take:]

    def output(self) -> _Output:
        return _Output(
            self.cv,
            _words(self.block),
            self.chunk_counter,
            len(self.block),
            self._start_flag() | _CHUNK_END,
        )


class Blake3:
    """Incremental BLAKE3 hasher producing 32-byte digests."""

    digest_size = 32

    def __init__(self, data: bytes | bytearray | memoryview = b"") -> None:
        self._chunk = _ChunkState(_IV, 0)
        self._stack: list[tuple[int, ...]] = []
        if data:
            self.update(data)

    def update(self, data: bytes | bytearray | memoryview) -> Blake3:
        """Feed more bytes to the hasher; returns the hasher itself."""
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"expected a bytes-like object, got {type(data).__name__}")
        view = memoryview(bytes(data))
        while view:
            if len(self._chunk) == _CHUNK_LEN:
                chunk_cv = self._chunk.output().chaining_value()
                total_chunks = self._chunk.chunk_counter + 1
                self._push_chunk(chunk_cv, total_chunks)
                self._chunk = _ChunkState(_IV, total_chunks)
            take = min(_CHUNK_LEN - len(self._chunk), len(view))
            self._chunk.update(view[:take])
            view = view[take:]
        return self

    def _push_chunk(self, cv: tuple[int, ...], total_chunks: int) -> None:
        while total_chunks & 1 == 0:
            cv = _parent_output(self._stack.pop(), cv).chaining_value()
            total_chunks >>= 1
        self._stack.append(cv)

    def digest(self) -> bytes:
        """Return the 32-byte digest of everything fed so far."""
        output = self._chunk.output()
        for left in reversed(self._stack):
            output = _parent_output(left, output.chaining_value())
        return output.root_bytes()

    def hexdigest(self) -> str:
        """Return the digest as 64 lower-case hex characters."""
        return self.digest().hex()


def blake3_hex(*args: str | bytes | bytearray | memoryview) -> str:
    """Hash the concatenation of the arguments (strings as UTF-8) and return hex."""
    hasher = Blake3()
    for part in args:
        hasher.update(part.encode("utf-8") if isinstance(part, str) else part)
    return hasher.hexdigest()