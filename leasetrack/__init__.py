"""
Lease Tracker

Order maintenance for the lease-tracking dashboard:
1. Fractional order keys for roadmap steps, properties and documents
2. Key health monitoring and reindexing
3. All-or-nothing persistence of reordered collections
4. Optimistic reorder controller with rollback
"""

__version__ = "0.1.0"
