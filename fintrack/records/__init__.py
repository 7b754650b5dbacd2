"""Storage operations for transactions, goals, categories and tips.

Per-user records (transactions, goals) take an OwnerScope and never build a
filter without it.
"""
