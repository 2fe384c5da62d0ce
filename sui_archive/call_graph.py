"""
Intra-package call graph extraction.

For every function defined in a module, collect the fully qualified names
(``0x<address>::<module>::<function>``) of the functions it calls directly.
"""

import logging
from typing import Any, Dict, Optional, Set

from .models import Package, canonical_address
from .module_reader import BytecodeReader, FunctionHandle, ModuleView, Opcode
from .interface import decode_modules

logger = logging.getLogger(__name__)


def full_function_name(module: ModuleView, handle: FunctionHandle) -> str:
    # The address is taken as embedded in the bytecode; the package's
    # linkage table is not consulted.
    module_handle = module.module_handle_at(handle.module)
    address = canonical_address(module.address_at(module_handle.address))
    module_name = module.identifier_at(module_handle.name)
    function_name = module.identifier_at(handle.name)
    return f"{address}::{module_name}::{function_name}"


def module_call_graph(module: ModuleView) -> Dict[str, Set[str]]:
    """
    Function name -> set of callee names.

    Every defined function is a key, including natives and leaves with no
    calls. Generic calls are named like their non-generic counterpart, so
    different instantiations of one callee collapse into a single edge.
    """
    graph: Dict[str, Set[str]] = {}
    for function_def in module.function_defs():
        caller = module.identifier_at(module.function_handle_at(function_def.function).name)
        callees = graph.setdefault(caller, set())
        for instruction in module.instructions_of(function_def):
            if instruction.opcode == Opcode.CALL:
                handle = module.function_handle_at(instruction.operand)
            elif instruction.opcode == Opcode.CALL_GENERIC:
                instantiation = module.function_instantiation_at(instruction.operand)
                handle = module.function_handle_at(instantiation.handle)
            else:
                continue
            callees.add(full_function_name(module, handle))
    return graph


def package_call_graph(
    package: Package,
    reader: BytecodeReader,
    modules: Optional[Dict[str, ModuleView]] = None,
) -> Dict[str, Any]:
    """Build the ``call_graph.json`` report of a package."""
    if modules is None:
        modules = decode_modules(package, reader)

    module_call_graphs = []
    for module_name in package.module_map:
        graph = module_call_graph(modules[module_name])
        module_call_graphs.append({
            "moduleName": module_name,
            "callGraph": {
                caller: sorted(callees) for caller, callees in sorted(graph.items())
            },
        })
    logger.debug("Built call graph for %s (%d modules)", package.id, len(module_call_graphs))
    return {
        "packageId": package.id,
        "moduleCallGraphs": module_call_graphs,
    }
