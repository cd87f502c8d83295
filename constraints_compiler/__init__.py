"""
Constraints compiler: type-checks and evaluates constraint code over a
stdin/stdout line protocol.
"""

__version__ = "0.1.0"
