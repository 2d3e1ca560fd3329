"""
models/ - Domain Layer
======================
Plain dataclasses shared by every other layer. No I/O lives here.
"""
