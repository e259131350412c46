"""ReelVault Shared Module.

Error handling, logging, constants, cancellation and the protocols the
core depends on.
"""

__all__ = ["cancellation", "constants", "errors", "logging", "protocols"]
