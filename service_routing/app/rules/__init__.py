"""
Rule management package.

- admin: Create/update/delete rules, normalizing weight buckets to
  canonical department ids.
- cascade: Re-routes already routed parcels after a weight rule changes.

Pending parcels are never touched by a cascade; they are routed when
their insurance approval is decided.
"""
