"""Minimal BCS encoder for read-only programmable transactions.

Only what sui_devInspectTransactionBlock needs to evaluate one move call:

    TransactionKind::ProgrammableTransaction {
        inputs: Vec<CallArg>,
        commands: Vec<Command>,
    }

Encoding rules (Binary Canonical Serialization):
- sequences and byte strings carry a ULEB128 length prefix
- enums carry a ULEB128 variant index followed by the payload
- integers are little-endian, fixed width
- addresses / object ids are 32 raw bytes without a length prefix
"""

import base64
from dataclasses import dataclass, field
from typing import List, Optional, Union

import base58

from app.kyc.address import ADDRESS_BYTES, normalize_address

# Enum variant indices
_TX_KIND_PROGRAMMABLE = 0
_CALL_ARG_PURE = 0
_CALL_ARG_OBJECT = 1
_OBJECT_ARG_IMM_OR_OWNED = 0
_OBJECT_ARG_SHARED = 1
_COMMAND_MOVE_CALL = 0
_ARGUMENT_INPUT = 1

DIGEST_BYTES = 32


class BcsWriter:
    """Append-only BCS byte buffer."""

    def __init__(self):
        self._buf = bytearray()

    def uleb128(self, value: int) -> "BcsWriter":
        if value < 0:
            raise ValueError("ULEB128 cannot encode negative values")
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                self._buf.append(byte | 0x80)
            else:
                self._buf.append(byte)
                return self

    def u8(self, value: int) -> "BcsWriter":
        self._buf += value.to_bytes(1, "little")
        return self

    def u16(self, value: int) -> "BcsWriter":
        self._buf += value.to_bytes(2, "little")
        return self

    def u64(self, value: int) -> "BcsWriter":
        self._buf += value.to_bytes(8, "little")
        return self

    def flag(self, value: bool) -> "BcsWriter":
        return self.u8(1 if value else 0)

    def vec_u8(self, value: bytes) -> "BcsWriter":
        self.uleb128(len(value))
        self._buf += value
        return self

    def string(self, value: str) -> "BcsWriter":
        return self.vec_u8(value.encode("utf-8"))

    def address(self, value: str) -> "BcsWriter":
        raw = bytes.fromhex(normalize_address(value)[2:])
        if len(raw) != ADDRESS_BYTES:
            raise ValueError(f"Address must be {ADDRESS_BYTES} bytes: {value}")
        self._buf += raw
        return self

    def getvalue(self) -> bytes:
        return bytes(self._buf)


@dataclass
class OwnedObjectInput:
    """Reference to an owned or immutable object at a specific version."""
    object_id: str
    version: int
    digest: str  # base58

    def write(self, w: BcsWriter) -> None:
        digest = base58.b58decode(self.digest)
        if len(digest) != DIGEST_BYTES:
            raise ValueError(f"Object digest must be {DIGEST_BYTES} bytes")
        w.uleb128(_CALL_ARG_OBJECT).uleb128(_OBJECT_ARG_IMM_OR_OWNED)
        w.address(self.object_id).u64(self.version).vec_u8(digest)


@dataclass
class SharedObjectInput:
    object_id: str
    initial_shared_version: int
    mutable: bool = False

    def write(self, w: BcsWriter) -> None:
        w.uleb128(_CALL_ARG_OBJECT).uleb128(_OBJECT_ARG_SHARED)
        w.address(self.object_id).u64(self.initial_shared_version).flag(self.mutable)


@dataclass
class PureInput:
    value: bytes

    def write(self, w: BcsWriter) -> None:
        w.uleb128(_CALL_ARG_PURE).vec_u8(self.value)


CallArg = Union[OwnedObjectInput, SharedObjectInput, PureInput]


@dataclass
class MoveCall:
    """A move call whose arguments are all transaction inputs, by index."""
    package: str
    module: str
    function: str
    input_indices: List[int] = field(default_factory=list)

    def write(self, w: BcsWriter) -> None:
        w.uleb128(_COMMAND_MOVE_CALL)
        w.address(self.package).string(self.module).string(self.function)
        w.uleb128(0)  # no type arguments
        w.uleb128(len(self.input_indices))
        for index in self.input_indices:
            w.uleb128(_ARGUMENT_INPUT).u16(index)


def encode_programmable_transaction(
    inputs: List[CallArg],
    calls: List[MoveCall],
) -> bytes:
    """Serialize a TransactionKind::ProgrammableTransaction."""
    w = BcsWriter()
    w.uleb128(_TX_KIND_PROGRAMMABLE)
    w.uleb128(len(inputs))
    for arg in inputs:
        arg.write(w)
    w.uleb128(len(calls))
    for call in calls:
        call.write(w)
    return w.getvalue()


def build_single_call(
    target: str,
    inputs: List[CallArg],
    package_id: Optional[str] = None,
) -> str:
    """Build a one-call transaction kind and return it base64-encoded.

    Args:
        target: "<package>::<module>::<function>".
        inputs: Call arguments, passed to the function in order.
        package_id: Overrides the package part of target when given.

    Returns:
        Base64 BCS bytes suitable for sui_devInspectTransactionBlock.
    """
    parts = target.split("::")
    if len(parts) != 3:
        raise ValueError(f"Move call target must be package::module::function: {target}")
    package, module, function = parts
    call = MoveCall(
        package=package_id or package,
        module=module,
        function=function,
        input_indices=list(range(len(inputs))),
    )
    raw = encode_programmable_transaction(inputs, [call])
    return base64.b64encode(raw).decode("ascii")
