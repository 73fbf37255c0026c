"""Password hashing and verification backed by bcrypt."""

import logging
from typing import Optional

import bcrypt
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


class CredentialVerifier:
    """Compares plaintext passwords against stored bcrypt hashes.

    bcrypt is CPU bound, so the async helpers run it in the thread pool.
    """

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._dummy_hash: Optional[bytes] = None

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Return True if ``password`` matches ``password_hash``.

        A malformed hash counts as a mismatch.
        """
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError as e:
            logger.warning(f"Stored password hash could not be checked: {e}")
            return False

    def burn(self, password: str) -> None:
        """Run a full bcrypt check against a throwaway hash.

        Used on the unknown-user path so it costs about as much as a real check.
        """
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"unused-password", bcrypt.gensalt(rounds=self.rounds))
        try:
            bcrypt.checkpw(password.encode("utf-8"), self._dummy_hash)
        except ValueError:
            # Same outcome as verify() for passwords bcrypt refuses
            pass

    async def verify_async(self, password: str, password_hash: str) -> bool:
        return await run_in_threadpool(self.verify, password, password_hash)

    async def hash_password_async(self, password: str) -> str:
        return await run_in_threadpool(self.hash_password, password)

    async def burn_async(self, password: str) -> None:
        await run_in_threadpool(self.burn, password)
