"""
                Delivery Desk

Back-office service for restaurant delivery and takeaway orders:
platform classification, status lifecycle, urgency scheduling and
receipt scanning, with hybrid in-memory/real collaborators.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
