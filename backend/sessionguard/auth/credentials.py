"""Password verification for principals, including the seed-hash migration."""

from __future__ import annotations

import hmac
import logging

from sessionguard.auth.models import Principal
from sessionguard.auth.repository import PrincipalRepository
from sessionguard.core.password import hash_password
from sessionguard.core.password import verify_password

logger = logging.getLogger(__name__)

# Placeholder hash shipped in early seed data; it is not a valid bcrypt hash.
SEED_PLACEHOLDER_HASH = "$2a$10$7P5q5e5z5r5t5y5u5i5o5p5a5s5d5f5g5h5j5k5l5m5n5b5v5c5x5w5e5r5t"
SEED_PLACEHOLDER_PASSWORD = "123456"

# Real bcrypt hash checked when there is no stored hash to compare against,
# so a miss costs the same as a wrong password.
_DUMMY_BCRYPT_HASH = hash_password("sessionguard-no-such-principal")


class CredentialVerifier:
    """Check candidate passwords against a principal's stored hash.

    When ``seed_migration_enabled`` is set, a principal still carrying
    :data:`SEED_PLACEHOLDER_HASH` is accepted with the seed password exactly
    once: the verifier immediately stores a real bcrypt hash in its place, so
    every later login goes through the normal comparison.
    """

    def __init__(self, principals: PrincipalRepository, *, seed_migration_enabled: bool = True) -> None:
        self._principals = principals
        self._seed_migration_enabled = seed_migration_enabled

    def verify(self, principal: Principal, candidate: str) -> bool:
        if principal.password_hash == SEED_PLACEHOLDER_HASH:
            return self._verify_seed_placeholder(principal, candidate)
        return verify_password(candidate, principal.password_hash)

    def verify_absent(self, candidate: str) -> bool:
        """Spend one bcrypt comparison on a login with no usable principal; always False."""
        verify_password(candidate, _DUMMY_BCRYPT_HASH)
        return False

    def _verify_seed_placeholder(self, principal: Principal, candidate: str) -> bool:
        if not self._seed_migration_enabled:
            return self.verify_absent(candidate)
        if not hmac.compare_digest(candidate.encode("utf-8"), SEED_PLACEHOLDER_PASSWORD.encode("utf-8")):
            return self.verify_absent(candidate)

        self._principals.update_password_hash(principal.id, hash_password(candidate))
        logger.warning("migrated seed placeholder hash to bcrypt for principal_id=%s", principal.id)
        return True
