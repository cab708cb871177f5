"""
CL8Y bridge core.

Universal address codec, V2 transfer hashing, fee policy, custody strategies
and the deposit/withdraw state machine, with an archive and a read-only API.
"""

__version__ = "0.1.0"
