"""
Persistence package.

- base: Abstract store contracts the routing core consumes.
- memory: In-memory stores used by tests, scripts and local runs.

Stores enforce tracking ID uniqueness; the batch processor's
check-then-create is not atomic on its own.
"""
