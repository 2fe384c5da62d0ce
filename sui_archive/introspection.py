"""Lazy, per-package access to the derived reports."""

from typing import Any, Dict, Optional

from .call_graph import package_call_graph
from .interface import decode_modules, original_package_id, package_interface
from .models import PACKAGE_START_VERSION, Package
from .module_reader import BytecodeReader, ModuleView


class PackageIntrospector:
    """
    Decodes a package's modules at most once and derives the interface
    report, the call graph report and the original package id from them.
    Nothing is decoded until one of them is asked for.
    """

    def __init__(self, reader: Optional[BytecodeReader]):
        self.reader = reader
        self._package_id: Optional[str] = None
        self._modules: Optional[Dict[str, ModuleView]] = None

    def _require_reader(self) -> BytecodeReader:
        if self.reader is None:
            raise ValueError(
                "A bytecode reader is required to introspect packages; "
                "configure one with --bytecode-reader or bytecode_reader in settings"
            )
        return self.reader

    def modules(self, package: Package) -> Dict[str, ModuleView]:
        if self._package_id != package.id or self._modules is None:
            self._modules = decode_modules(package, self._require_reader())
            self._package_id = package.id
        return self._modules

    def interface_report(self, package: Package) -> Dict[str, Any]:
        return package_interface(package, self._require_reader(), self.modules(package))

    def call_graph_report(self, package: Package) -> Dict[str, Any]:
        return package_call_graph(package, self._require_reader(), self.modules(package))

    def original_package_id(self, package: Package) -> str:
        if package.version == PACKAGE_START_VERSION or not package.module_map:
            return package.id
        return original_package_id(package, self._require_reader(), self.modules(package))
