"""
Multigov - Multi-Option Governance Counting

Vote tallying and winner selection for governance proposals with
simple (for/against/abstain), approval-bitmap and weighted-coefficient
counting policies.
"""

__version__ = "0.3.0"

from multigov.config import settings

__all__ = ["settings", "__version__"]
