"""
utils/ - Shared Helpers
=======================
Logging setup, display formatting and command-argument parsing.
"""
