"""
Checkout pipeline services.

Stores wrap persistence; the reconciler and committer hold the checkout rules.
"""
