"""
Pulse Analytics - cross-channel YouTube / GA4 reporting backend
"""
__version__ = "0.4.0"
