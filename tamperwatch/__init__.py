"""
TamperWatch - periodic file integrity monitoring for servers.
"""

__version__ = "1.2.0"
