"""Test suite for Cascade-Extract.

This package contains hermetic tests following the pytest framework.
Tests mirror the cascade/ module layout for discoverability.

Testing Philosophy:
    - A recording fake transport replaces the network in strategy tests
    - Focus coverage on the cascade contract and field normalization
    - Avoid external dependencies - all I/O should be mocked
"""
