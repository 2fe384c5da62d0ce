"""
Signature formatting.

Renders signature tokens as Move-style type strings. Datatypes are always
printed with their full, zero-padded declaring address so that the same type
produces the same string across modules and package upgrades.
"""

from typing import Sequence, Tuple

from .models import canonical_address
from .module_reader import PRIMITIVE_KINDS, ModuleView, SignatureToken, TokenKind


def resolve_datatype(module: ModuleView, handle_index: int) -> Tuple[str, str, str]:
    """Return (canonical address, module name, type name) for a datatype handle."""
    datatype_handle = module.struct_handle_at(handle_index)
    module_handle = module.module_handle_at(datatype_handle.module)
    address = canonical_address(module.address_at(module_handle.address))
    module_name = module.identifier_at(module_handle.name)
    type_name = module.identifier_at(datatype_handle.name)
    return address, module_name, type_name


def format_signature_token(module: ModuleView, token: SignatureToken) -> str:
    kind = token.kind
    if kind in PRIMITIVE_KINDS:
        return kind.value
    if kind == TokenKind.VECTOR:
        return f"vector<{format_signature_token(module, token.inner)}>"
    if kind == TokenKind.REFERENCE:
        return f"&{format_signature_token(module, token.inner)}"
    if kind == TokenKind.MUTABLE_REFERENCE:
        return f"&mut {format_signature_token(module, token.inner)}"
    if kind == TokenKind.TYPE_PARAMETER:
        return f"T{token.index}"
    if kind in (TokenKind.DATATYPE, TokenKind.DATATYPE_INSTANTIATION):
        return _format_datatype(module, token.index, token.type_arguments)
    raise ValueError(f"Unknown signature token kind: {kind}")


def format_signature(module: ModuleView, tokens: Sequence[SignatureToken]) -> list:
    """Format every token of a signature, keeping order."""
    return [format_signature_token(module, t) for t in tokens]


def _format_datatype(
    module: ModuleView, handle_index: int, type_arguments: Sequence[SignatureToken]
) -> str:
    address, module_name, type_name = resolve_datatype(module, handle_index)
    type_args = ""
    if type_arguments:
        type_args = "<" + ", ".join(
            format_signature_token(module, t) for t in type_arguments
        ) + ">"
    return f"{address}::{module_name}::{type_name}{type_args}"
