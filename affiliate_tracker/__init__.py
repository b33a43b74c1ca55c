"""Affiliate referral tracking: attribution, commissions and payouts."""

__version__ = "1.0.0"
