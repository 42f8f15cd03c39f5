"""
Adapter implementations for Flight Search.

Adapters are concrete implementations of the port interfaces.
They handle the specifics of schedule sources, ingestion tracking and caching.
"""
