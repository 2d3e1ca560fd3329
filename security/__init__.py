"""
security/ - Handler Guards
==========================
Decorators applied to every Telegram handler: whitelist and rate limiting.
"""
