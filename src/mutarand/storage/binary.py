# src/mutarand/storage/binary.py
from __future__ import annotations

import struct
from typing import Optional

from mutarand.core.engine.engine import Engine
from mutarand.core.engine.entropy import EntropySource
from mutarand.core.engine.state import ChainLink, EngineState
from mutarand.core.engine.width import Width
from mutarand.core.errors import DecodeFault
from mutarand.core.instruction.instruction import Instruction

# Byte-exact persisted layouts (big-endian). Changing any of these breaks
# every stored engine.
#
# chain:      u32 count | count * (u8 opcode, i64 operand)
# variant A:  chain | i64 seed | u8 reseed_flag          (Width.I64)
# variant B:  i32 seed | u8 reseed_flag | chain          (Width.I32, legacy)
#
# Variant B seeds are sign-extended on read: the legacy writer stored a
# two's complement i32.

_COUNT = struct.Struct(">I")
_RECORD = struct.Struct(">Bq")
_SEED_A = struct.Struct(">qB")
_HEADER_B = struct.Struct(">iB")


def encode(engine: Engine) -> bytes:
    """
    Encode with the variant matching the engine width.
    """
    if engine.width is Width.I64:
        return encode_variant_a(engine)
    return encode_variant_b(engine)


def decode(data: bytes, *, width: Width = Width.I64, entropy: Optional[EntropySource] = None) -> Engine:
    if width is Width.I64:
        return decode_variant_a(data, entropy=entropy)
    return decode_variant_b(data, entropy=entropy)


def encode_chain(engine: Engine) -> bytes:
    chain = engine.chain
    parts = [_COUNT.pack(len(chain))]
    parts.extend(_RECORD.pack(instruction.opcode, operand) for instruction, operand in chain)
    return b"".join(parts)


def encode_variant_a(engine: Engine) -> bytes:
    if engine.width is not Width.I64:
        raise ValueError("variant A requires an i64 engine")
    return encode_chain(engine) + _SEED_A.pack(engine.seed, int(engine.reseed_on_advance))


def encode_variant_b(engine: Engine) -> bytes:
    if engine.width is not Width.I32:
        raise ValueError("variant B requires an i32 engine")
    return _HEADER_B.pack(engine.seed, int(engine.reseed_on_advance)) + encode_chain(engine)


def decode_variant_a(data: bytes, *, entropy: Optional[EntropySource] = None) -> Engine:
    data = bytes(data)
    chain, offset = _decode_chain(data, 0, width=Width.I64)
    if len(data) - offset != _SEED_A.size:
        raise DecodeFault(f"expected {_SEED_A.size} trailer bytes, got {len(data) - offset}")
    seed, flag = _SEED_A.unpack_from(data, offset)
    return _assemble(Width.I64, seed, _flag(flag), chain, entropy)


def decode_variant_b(data: bytes, *, entropy: Optional[EntropySource] = None) -> Engine:
    data = bytes(data)
    if len(data) < _HEADER_B.size:
        raise DecodeFault(f"legacy header needs {_HEADER_B.size} bytes, got {len(data)}")
    seed, flag = _HEADER_B.unpack_from(data, 0)
    chain, offset = _decode_chain(data, _HEADER_B.size, width=Width.I32)
    if offset != len(data):
        raise DecodeFault(f"{len(data) - offset} trailing bytes after chain")
    return _assemble(Width.I32, seed, _flag(flag), chain, entropy)


# ---------------- Internals ----------------


def _decode_chain(data: bytes, offset: int, *, width: Width) -> tuple[list[ChainLink], int]:
    if len(data) - offset < _COUNT.size:
        raise DecodeFault("truncated chain length")
    (count,) = _COUNT.unpack_from(data, offset)
    offset += _COUNT.size

    needed = count * _RECORD.size
    if len(data) - offset < needed:
        raise DecodeFault(f"truncated chain: {count} records need {needed} bytes")

    chain: list[ChainLink] = []
    for opcode, operand in _RECORD.iter_unpack(data[offset : offset + needed]):
        if not width.fits(operand):
            raise DecodeFault(f"operand {operand} does not fit {width.label}")
        # unknown opcodes are a ConfigurationFault, not a DecodeFault
        chain.append(ChainLink(instruction=Instruction.from_opcode(opcode), operand=operand))

    return chain, offset + needed


def _flag(value: int) -> bool:
    if value not in (0, 1):
        raise DecodeFault(f"reseed flag must be 0 or 1, got {value}")
    return value == 1


def _assemble(
    width: Width,
    seed: int,
    reseed: bool,
    chain: list[ChainLink],
    entropy: Optional[EntropySource],
) -> Engine:
    # built only after every byte parsed: decode never yields a partial engine
    state = EngineState(width=width, seed=seed, reseed_on_advance=reseed, chain=chain)
    return Engine.from_state(state, entropy=entropy)
