"""
Account service: account lifecycle and credential verification API.
"""

__version__ = "1.0.0"
