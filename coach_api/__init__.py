"""
Coach API - Workplace Coaching Backend

Tier-aware AI coaching chat and conflict analysis behind daily query
quotas, with Stripe-driven subscription tiers.
"""

__version__ = "1.0.0"
__author__ = "Coach API"
