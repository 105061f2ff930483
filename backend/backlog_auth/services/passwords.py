"""Password hashing for accounts with a local password.

No route sets a password. Local-password users are provisioned by operator
tooling writing `users.password_hash`, which must use `hash_password` so
that `verify_password` accepts the result.
"""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

# Verified against for unknown accounts so response timing does not reveal them
_DUMMY_HASH = ph.hash("dummy-password-for-timing")


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Verify a password against its hash using constant-time comparison.

    A missing hash (OAuth-only account) still costs one verification.
    """
    try:
        ph.verify(password_hash or _DUMMY_HASH, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False
    return password_hash is not None
