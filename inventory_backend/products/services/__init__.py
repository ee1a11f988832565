# products/services/__init__.py
"""
Inventory services: batch ledger, FIFO allocator, availability.
"""
