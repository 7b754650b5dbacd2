"""FinTrack - personal finance tracking backend.

The server is a thin HTTP layer over MongoDB:
- Users register, log in and receive an httpOnly JWT cookie.
- Transactions and goals are scoped to their owner's email.
- Categories and tips are global; only admins may change them.

See README for setup and usage.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
