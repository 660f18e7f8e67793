# src/beacon/fingerprint.py
"""Client fingerprinting.

The collector groups errors by the reporting runtime. For a Python host that
is the interpreter implementation and version.
"""

import platform

from beacon.records import ClientDescriptor


def describe_client() -> ClientDescriptor:
    """Describe the running interpreter, e.g. CPython 3.12.1."""
    return ClientDescriptor(
        name=platform.python_implementation(),
        version=platform.python_version(),
    )
