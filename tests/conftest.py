"""
Shared fixtures: a small hand-built module modelled on a Sui framework
``pay`` module, a dictionary-backed bytecode reader and sample packages.

The ``pay`` module, at address 0x2:

    public entry fun transfer(c: coin::Coin<sui::SUI>, to: address)   calls split twice, join once
    public fun split(amount: u64)                                      calls helper<u64>, helper<address>, coin::burn
    public(friend) fun join()
    native fun native_fn()
    fun helper<T>()

    struct TreasuryCap { 3 fields }
    struct AdminCap { id }
"""

import pytest

from sui_archive.models import Package, PackageWithMetadata, canonical_address
from sui_archive.module_reader import (
    BytecodeReader,
    DatatypeHandle,
    FunctionDefinition,
    FunctionHandle,
    FunctionInstantiation,
    Instruction,
    ModuleHandle,
    Opcode,
    SignatureToken,
    StructDefinition,
    TableModule,
    TokenKind,
    Visibility,
)

FRAMEWORK_ADDRESS = canonical_address("0x2")
PAY_BYTES = b"\xa1\x1c\xeb\x0b-pay"
UPGRADED_BYTES = b"\xa1\x1c\xeb\x0b-pay-v2"
ORIGINAL_ADDRESS = canonical_address("0xabc")
UPGRADED_ADDRESS = canonical_address("0xdef")


def address_bytes(address: str) -> bytes:
    return bytes.fromhex(canonical_address(address, with_prefix=False))


def build_pay_module(address: str = FRAMEWORK_ADDRESS) -> TableModule:
    u64 = SignatureToken.primitive(TokenKind.U64)
    addr = SignatureToken.primitive(TokenKind.ADDRESS)
    return TableModule(
        self_module_handle=0,
        module_handles=[
            ModuleHandle(address=0, name=0),   # pay
            ModuleHandle(address=0, name=1),   # coin
            ModuleHandle(address=0, name=3),   # sui
        ],
        datatype_handles=[
            DatatypeHandle(module=1, name=2),    # coin::Coin
            DatatypeHandle(module=2, name=4),    # sui::SUI
            DatatypeHandle(module=0, name=10),   # pay::TreasuryCap
            DatatypeHandle(module=0, name=11),   # pay::AdminCap
        ],
        function_handles=[
            FunctionHandle(module=0, name=5, parameters=1, return_=0),   # transfer
            FunctionHandle(module=0, name=6, parameters=2, return_=0),   # split
            FunctionHandle(module=0, name=7, parameters=0, return_=0),   # join
            FunctionHandle(module=1, name=12, parameters=0, return_=0),  # coin::burn
            FunctionHandle(module=0, name=9, parameters=0, return_=0),   # native_fn
            FunctionHandle(module=0, name=8, parameters=0, return_=0),   # helper
        ],
        function_instantiations=[
            FunctionInstantiation(handle=5, type_parameters=2),
            FunctionInstantiation(handle=5, type_parameters=3),
        ],
        signatures=[
            [],
            [SignatureToken.datatype(0, SignatureToken.datatype(1)), addr],
            [u64],
            [addr],
        ],
        identifiers=[
            "pay", "coin", "Coin", "sui", "SUI", "transfer", "split", "join",
            "helper", "native_fn", "TreasuryCap", "AdminCap", "burn",
        ],
        address_identifiers=[address_bytes(address)],
        structs=[
            StructDefinition(struct_handle=2, field_count=3),
            StructDefinition(struct_handle=3, field_count=1),
        ],
        functions=[
            FunctionDefinition(
                function=0,
                visibility=Visibility.PUBLIC,
                is_entry=True,
                code=[
                    Instruction(Opcode.MOVE_LOC, 0),
                    Instruction(Opcode.CALL, 1),
                    Instruction(Opcode.CALL, 1),
                    Instruction(Opcode.CALL, 2),
                    Instruction(Opcode.RET),
                ],
            ),
            FunctionDefinition(
                function=1,
                visibility=Visibility.PUBLIC,
                code=[
                    Instruction(Opcode.CALL_GENERIC, 0),
                    Instruction(Opcode.CALL_GENERIC, 1),
                    Instruction(Opcode.CALL, 3),
                    Instruction(Opcode.RET),
                ],
            ),
            FunctionDefinition(
                function=2,
                visibility=Visibility.FRIEND,
                code=[Instruction(Opcode.RET)],
            ),
            FunctionDefinition(function=4, code=None),
            FunctionDefinition(function=5, code=[Instruction(Opcode.RET)]),
        ],
    )


class FakeReader(BytecodeReader):
    """Looks modules up by their exact bytes; unknown bytes fail to decode."""

    def __init__(self, modules=None):
        self.modules = dict(modules or {})
        self.calls = 0

    def deserialize(self, data):
        self.calls += 1
        return self.modules[data]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def pay_module():
    return build_pay_module()


@pytest.fixture
def fake_reader(pay_module):
    return FakeReader({
        PAY_BYTES: pay_module,
        UPGRADED_BYTES: build_pay_module(ORIGINAL_ADDRESS),
    })


@pytest.fixture
def sample_package():
    return Package(
        id="0x2",
        version=1,
        module_map={"pay": PAY_BYTES},
        type_origin_table=[
            {"module_name": "pay", "datatype_name": "TreasuryCap", "package": FRAMEWORK_ADDRESS},
        ],
        linkage_table={},
    )


@pytest.fixture
def upgraded_package():
    return Package(
        id=UPGRADED_ADDRESS,
        version=2,
        module_map={"pay": UPGRADED_BYTES},
        linkage_table={
            FRAMEWORK_ADDRESS: {"upgraded_id": FRAMEWORK_ADDRESS, "upgraded_version": 1},
        },
    )


@pytest.fixture
def sample_record(sample_package):
    return PackageWithMetadata(
        package=sample_package,
        checkpoint=250,
        transaction_digest="8FxwBHKFh2VxPSmDqkeYh1Fx2KgVDdXHt9MRwkPzHDrB",
        sender=canonical_address("0x0"),
    )
