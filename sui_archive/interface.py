"""
Package Interface Extraction

Builds the human-readable interface of a package: for every function of
every module its visibility, entry flag and formatted parameter/return
types. The package-level report is what gets written to ``bcs.json``.
"""

import base64
import logging
from typing import Any, Dict, List, Optional

from .models import PACKAGE_START_VERSION, Package, canonical_address
from .module_reader import BytecodeReader, ModuleView
from .signatures import format_signature, resolve_datatype

logger = logging.getLogger(__name__)

CAPABILITY_SUFFIX = "Cap"


def decode_modules(package: Package, reader: BytecodeReader) -> Dict[str, ModuleView]:
    """
    Decode every module of a package.

    A single undecodable module fails the whole package; no partial result
    is returned.
    """
    return {
        name: reader.read_module(name, code, package.id)
        for name, code in package.module_map.items()
    }


def module_function_map(module: ModuleView) -> Dict[str, Dict[str, Any]]:
    """Function name -> {visibility, isEntry, params, return}, in declaration order."""
    function_map: Dict[str, Dict[str, Any]] = {}
    for function_def in module.function_defs():
        handle = module.function_handle_at(function_def.function)
        name = module.identifier_at(handle.name)
        function_map[name] = {
            "visibility": function_def.visibility.value,
            "isEntry": function_def.is_entry,
            "params": format_signature(module, module.signature_at(handle.parameters)),
            "return": format_signature(module, module.signature_at(handle.return_)),
        }
    return function_map


def package_interface(
    package: Package,
    reader: BytecodeReader,
    modules: Optional[Dict[str, ModuleView]] = None,
) -> Dict[str, Any]:
    """
    Build the ``bcs.json`` report of a package.

    Args:
        package: The package to describe.
        reader: Reader used to decode modules when ``modules`` is not given.
        modules: Already decoded modules, keyed by module name.

    Returns:
        JSON-serializable dict; map keys are in sorted order.
    """
    if modules is None:
        modules = decode_modules(package, reader)

    function_map = {}
    for module_name in sorted(modules):
        functions = module_function_map(modules[module_name])
        function_map[module_name] = dict(sorted(functions.items()))

    return {
        "dataType": "package",
        "id": package.id,
        "version": package.version,
        "moduleMap": {
            name: base64.b64encode(code).decode("ascii")
            for name, code in sorted(package.module_map.items())
        },
        "typeOriginTable": list(package.type_origin_table),
        "linkageTable": dict(sorted(package.linkage_table.items())),
        "functionMap": function_map,
    }


def original_package_id(
    package: Package,
    reader: BytecodeReader,
    modules: Optional[Dict[str, ModuleView]] = None,
) -> str:
    """
    Id the package was first published under.

    A first version is its own original. Upgrades keep the original id as
    the self address of their modules.
    """
    if package.version == PACKAGE_START_VERSION or not package.module_map:
        return package.id
    first_name = next(iter(package.module_map))
    if modules is not None and first_name in modules:
        module = modules[first_name]
    else:
        module = reader.read_module(first_name, package.module_map[first_name], package.id)
    return canonical_address(module.self_address())


def find_capability_structs(module: ModuleView) -> List[str]:
    """
    List capability-like structs: names ending in ``Cap`` that declare more
    than one field. A plain capability only has its ``id`` field; extra
    fields are worth a look.
    """
    found = []
    for struct_def in module.struct_defs():
        address, module_name, struct_name = resolve_datatype(module, struct_def.struct_handle)
        if not struct_name.endswith(CAPABILITY_SUFFIX):
            continue
        if struct_def.field_count is None or struct_def.field_count <= 1:
            continue
        found.append(
            f"{address}::{module_name}::{struct_name} (n_fields: {struct_def.field_count})"
        )
    return found
