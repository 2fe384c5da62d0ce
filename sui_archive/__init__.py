"""
Sui Package Archiver

Pulls published Move packages from the Sui ledger (GraphQL, a CSV export or
a captured GraphQL page), derives their interfaces and intra-package call
graphs from the bytecode, and stores everything in a sharded, resumable
on-disk archive.
"""

__version__ = "1.0.0"
__author__ = "Sui Package Archive Team"
