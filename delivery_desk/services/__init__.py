"""
                        Services Module

External collaborators of the delivery manager, each with an in-memory
(development) and a real (staging/production) implementation.

Services:
    - orders: order store (in-memory / PostgreSQL)
    - extraction: receipt scanning (canned / Gemini)
    - notifications: user-facing notices (in-memory / Redis pub/sub)
    - archive: lock-protected Excel archive of delivered orders
"""

from delivery_desk.services.archive import DeliveryArchive

__all__ = ["DeliveryArchive"]
