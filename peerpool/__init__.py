"""
Peerpool - broadcast availability, plan hangouts, see which friends are free when.
"""

__version__ = "0.1.0"
