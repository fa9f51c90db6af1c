"""
                Order Tracking Service

Order lifecycle state machine and live delivery tracking for a
restaurant food-delivery platform.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
