"""
Bytecode reader capability.

Decoding Move module bytes into handle tables and instruction streams is not
done here. This module defines what the introspection passes need from a
decoded module (``ModuleView``), a table-backed implementation of that view
(``TableModule``) and the ``BytecodeReader`` interface a concrete decoder
implements. Concrete readers are plugged in by dotted path, e.g.
``my_decoder.readers:MoveReader``.
"""

import importlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from .errors import DecodeError

logger = logging.getLogger(__name__)


class Visibility(Enum):
    """Function visibility as declared in the module."""
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    FRIEND = "FRIEND"


class TokenKind(Enum):
    """Kinds of signature tokens."""
    BOOL = "bool"
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"
    U128 = "u128"
    U256 = "u256"
    ADDRESS = "address"
    SIGNER = "signer"
    VECTOR = "vector"
    REFERENCE = "reference"
    MUTABLE_REFERENCE = "mutable_reference"
    TYPE_PARAMETER = "type_parameter"
    DATATYPE = "datatype"
    DATATYPE_INSTANTIATION = "datatype_instantiation"


PRIMITIVE_KINDS = frozenset({
    TokenKind.BOOL, TokenKind.U8, TokenKind.U16, TokenKind.U32, TokenKind.U64,
    TokenKind.U128, TokenKind.U256, TokenKind.ADDRESS, TokenKind.SIGNER,
})


@dataclass(frozen=True)
class SignatureToken:
    """
    One node of a type signature.

    ``inner`` is set for vectors and references, ``index`` holds the type
    parameter index or the datatype handle index, ``type_arguments`` the
    arguments of a datatype instantiation.
    """
    kind: TokenKind
    inner: Optional["SignatureToken"] = None
    index: int = 0
    type_arguments: Tuple["SignatureToken", ...] = ()

    @classmethod
    def primitive(cls, kind: TokenKind) -> "SignatureToken":
        if kind not in PRIMITIVE_KINDS:
            raise ValueError(f"{kind} is not a primitive kind")
        return cls(kind)

    @classmethod
    def vector(cls, inner: "SignatureToken") -> "SignatureToken":
        return cls(TokenKind.VECTOR, inner=inner)

    @classmethod
    def reference(cls, inner: "SignatureToken") -> "SignatureToken":
        return cls(TokenKind.REFERENCE, inner=inner)

    @classmethod
    def mutable_reference(cls, inner: "SignatureToken") -> "SignatureToken":
        return cls(TokenKind.MUTABLE_REFERENCE, inner=inner)

    @classmethod
    def type_parameter(cls, index: int) -> "SignatureToken":
        return cls(TokenKind.TYPE_PARAMETER, index=index)

    @classmethod
    def datatype(cls, handle_index: int, *type_arguments: "SignatureToken") -> "SignatureToken":
        if type_arguments:
            return cls(
                TokenKind.DATATYPE_INSTANTIATION,
                index=handle_index,
                type_arguments=tuple(type_arguments),
            )
        return cls(TokenKind.DATATYPE, index=handle_index)


@dataclass(frozen=True)
class ModuleHandle:
    address: int   # index into the address identifier table
    name: int      # index into the identifier table


@dataclass(frozen=True)
class DatatypeHandle:
    module: int
    name: int


@dataclass(frozen=True)
class FunctionHandle:
    module: int
    name: int
    parameters: int  # signature index
    return_: int     # signature index


@dataclass(frozen=True)
class FunctionInstantiation:
    handle: int
    type_parameters: int  # signature index


class Opcode(Enum):
    """Move instruction opcodes."""
    POP = "Pop"
    RET = "Ret"
    BR_TRUE = "BrTrue"
    BR_FALSE = "BrFalse"
    BRANCH = "Branch"
    LD_U8 = "LdU8"
    LD_U16 = "LdU16"
    LD_U32 = "LdU32"
    LD_U64 = "LdU64"
    LD_U128 = "LdU128"
    LD_U256 = "LdU256"
    CAST_U8 = "CastU8"
    CAST_U16 = "CastU16"
    CAST_U32 = "CastU32"
    CAST_U64 = "CastU64"
    CAST_U128 = "CastU128"
    CAST_U256 = "CastU256"
    LD_CONST = "LdConst"
    LD_TRUE = "LdTrue"
    LD_FALSE = "LdFalse"
    COPY_LOC = "CopyLoc"
    MOVE_LOC = "MoveLoc"
    ST_LOC = "StLoc"
    CALL = "Call"
    CALL_GENERIC = "CallGeneric"
    PACK = "Pack"
    PACK_GENERIC = "PackGeneric"
    UNPACK = "Unpack"
    UNPACK_GENERIC = "UnpackGeneric"
    PACK_VARIANT = "PackVariant"
    PACK_VARIANT_GENERIC = "PackVariantGeneric"
    UNPACK_VARIANT = "UnpackVariant"
    UNPACK_VARIANT_GENERIC = "UnpackVariantGeneric"
    VARIANT_SWITCH = "VariantSwitch"
    READ_REF = "ReadRef"
    WRITE_REF = "WriteRef"
    FREEZE_REF = "FreezeRef"
    MUT_BORROW_LOC = "MutBorrowLoc"
    IMM_BORROW_LOC = "ImmBorrowLoc"
    MUT_BORROW_FIELD = "MutBorrowField"
    MUT_BORROW_FIELD_GENERIC = "MutBorrowFieldGeneric"
    IMM_BORROW_FIELD = "ImmBorrowField"
    IMM_BORROW_FIELD_GENERIC = "ImmBorrowFieldGeneric"
    ADD = "Add"
    SUB = "Sub"
    MUL = "Mul"
    MOD = "Mod"
    DIV = "Div"
    BIT_OR = "BitOr"
    BIT_AND = "BitAnd"
    XOR = "Xor"
    SHL = "Shl"
    SHR = "Shr"
    OR = "Or"
    AND = "And"
    NOT = "Not"
    EQ = "Eq"
    NEQ = "Neq"
    LT = "Lt"
    GT = "Gt"
    LE = "Le"
    GE = "Ge"
    ABORT = "Abort"
    NOP = "Nop"
    VEC_PACK = "VecPack"
    VEC_LEN = "VecLen"
    VEC_IMM_BORROW = "VecImmBorrow"
    VEC_MUT_BORROW = "VecMutBorrow"
    VEC_PUSH_BACK = "VecPushBack"
    VEC_POP_BACK = "VecPopBack"
    VEC_UNPACK = "VecUnpack"
    VEC_SWAP = "VecSwap"


@dataclass(frozen=True)
class Instruction:
    """
    A decoded instruction. For ``CALL`` the operand is a function handle
    index, for ``CALL_GENERIC`` a function instantiation index.
    """
    opcode: Opcode
    operand: Optional[Union[int, Tuple[int, ...]]] = None


@dataclass
class FunctionDefinition:
    function: int  # function handle index
    visibility: Visibility = Visibility.PRIVATE
    is_entry: bool = False
    code: Optional[List[Instruction]] = None  # None for native functions


@dataclass
class StructDefinition:
    struct_handle: int
    field_count: Optional[int] = None  # None for native structs


class ModuleView(ABC):
    """What the introspection passes read from one decoded module."""

    @abstractmethod
    def self_handle(self) -> ModuleHandle:
        ...

    @abstractmethod
    def function_defs(self) -> Sequence[FunctionDefinition]:
        ...

    @abstractmethod
    def struct_defs(self) -> Sequence[StructDefinition]:
        ...

    @abstractmethod
    def address_at(self, index: int) -> bytes:
        ...

    @abstractmethod
    def identifier_at(self, index: int) -> str:
        ...

    @abstractmethod
    def module_handle_at(self, index: int) -> ModuleHandle:
        ...

    @abstractmethod
    def struct_handle_at(self, index: int) -> DatatypeHandle:
        ...

    @abstractmethod
    def function_handle_at(self, index: int) -> FunctionHandle:
        ...

    @abstractmethod
    def function_instantiation_at(self, index: int) -> FunctionInstantiation:
        ...

    @abstractmethod
    def signature_at(self, index: int) -> Sequence[SignatureToken]:
        ...

    def instructions_of(self, function_def: FunctionDefinition) -> Sequence[Instruction]:
        """Instruction stream of a function; empty for natives."""
        return function_def.code or ()

    def self_address(self) -> bytes:
        return self.address_at(self.self_handle().address)

    def name(self) -> str:
        return self.identifier_at(self.self_handle().name)


@dataclass
class TableModule(ModuleView):
    """A module view backed by plain Python tables."""
    self_module_handle: int = 0
    module_handles: List[ModuleHandle] = field(default_factory=list)
    datatype_handles: List[DatatypeHandle] = field(default_factory=list)
    function_handles: List[FunctionHandle] = field(default_factory=list)
    function_instantiations: List[FunctionInstantiation] = field(default_factory=list)
    signatures: List[List[SignatureToken]] = field(default_factory=list)
    identifiers: List[str] = field(default_factory=list)
    address_identifiers: List[bytes] = field(default_factory=list)
    structs: List[StructDefinition] = field(default_factory=list)
    functions: List[FunctionDefinition] = field(default_factory=list)

    def self_handle(self) -> ModuleHandle:
        return self.module_handles[self.self_module_handle]

    def function_defs(self) -> Sequence[FunctionDefinition]:
        return self.functions

    def struct_defs(self) -> Sequence[StructDefinition]:
        return self.structs

    def address_at(self, index: int) -> bytes:
        return self.address_identifiers[index]

    def identifier_at(self, index: int) -> str:
        return self.identifiers[index]

    def module_handle_at(self, index: int) -> ModuleHandle:
        return self.module_handles[index]

    def struct_handle_at(self, index: int) -> DatatypeHandle:
        return self.datatype_handles[index]

    def function_handle_at(self, index: int) -> FunctionHandle:
        return self.function_handles[index]

    def function_instantiation_at(self, index: int) -> FunctionInstantiation:
        return self.function_instantiations[index]

    def signature_at(self, index: int) -> Sequence[SignatureToken]:
        return self.signatures[index]


class BytecodeReader(ABC):
    """Turns serialized module bytes into a ``ModuleView``."""

    @abstractmethod
    def deserialize(self, data: bytes) -> ModuleView:
        """Decode one module. Implementations raise any exception on malformed input."""

    def read_module(self, name: str, data: bytes, package_id: Optional[str] = None) -> ModuleView:
        """Decode one module, normalising failures to ``DecodeError``."""
        try:
            return self.deserialize(data)
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(f"Failed to decode module {name}: {e}", package_id) from e


def load_bytecode_reader(path: str) -> BytecodeReader:
    """
    Instantiate a reader from a ``module:ClassName`` dotted path.

    Raises:
        ValueError: if the path is malformed or does not name a BytecodeReader.
        ImportError: if the module cannot be imported.
    """
    module_name, sep, class_name = path.partition(":")
    if not sep or not module_name or not class_name:
        raise ValueError(f"Bytecode reader must look like 'package.module:ClassName', got {path!r}")
    module = importlib.import_module(module_name)
    try:
        reader_cls = getattr(module, class_name)
    except AttributeError as e:
        raise ValueError(f"{module_name} has no attribute {class_name}") from e
    reader = reader_cls()
    if not isinstance(reader, BytecodeReader):
        raise ValueError(f"{path} is not a BytecodeReader")
    logger.info("Using bytecode reader %s", path)
    return reader
