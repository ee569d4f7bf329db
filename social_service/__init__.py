"""
Social Core Service - links, messaging, interactions and notifications
"""
__version__ = "1.0.0"
