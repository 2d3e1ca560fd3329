"""
ai/ - Natural-Language Input
============================
Gemini-backed parsing for free-text messages that don't match a command form.
"""
