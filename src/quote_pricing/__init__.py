"""
Quote Pricing Package

Pricing and tax engine for B2B carts and quotes.
Resolves order totals using Tax → Volume Discount → Seller Cart pipeline and
assembles the quote/order submission payload.
"""

__version__ = "1.0.0"
