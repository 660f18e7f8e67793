# tests/property/__init__.py
"""Property-based tests for the beacon.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of.
"""
