"""
Shop — one facade over cart, confirmation and purchase.
"""

from bazaar.shop._shop import Offer, Shop

__all__ = ("Offer", "Shop")
