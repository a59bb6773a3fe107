"""Local artifact sync, skill and preference pools, and conversation rendering for an agent harness."""

__version__ = "0.1.0"