"""
Smart search for CRM contacts
"""

__version__ = "0.1.0"
