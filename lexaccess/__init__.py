"""
lexaccess - authentication and time-bound access control for the legal
assistant platform.
"""

__version__ = "0.1.0"
