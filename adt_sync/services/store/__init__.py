"""Store operations per record type.

Thin functions over ``BatchPersistence``; they know the key layout of each
record type and nothing about retries or chunking.
"""
from .contests import (
    get_contests,
    get_latest_contest,
    batch_get_contests,
    write_contests,
)
from .user_ac_problems import (
    get_user_ac_problems,
    batch_get_user_ac_problems,
    write_user_ac_problems,
)

__all__ = [
    # contests
    'get_contests', 'get_latest_contest', 'batch_get_contests', 'write_contests',
    # user AC problems
    'get_user_ac_problems', 'batch_get_user_ac_problems', 'write_user_ac_problems',
]
