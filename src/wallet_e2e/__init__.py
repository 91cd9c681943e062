"""Conformance harness for browser wallet signing flows.

Runs the same signing scenarios against a real wallet extension and a
simulated in-page provider, bootstrapping the extension UI into a ready
state first and triaging failures into a fixed taxonomy.
"""

__version__ = '0.1.0'
