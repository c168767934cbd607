import logging

from ..core.errors import StorageError
from ..stores.device_storage import DeviceStorage

logger = logging.getLogger(__name__)

DEFAULT_STUDY_COUNT_KEY = "@study_count"


class UsageCounter:
    """Count of studies started on one device install.

    The count only ever goes up. Reads fail open to 0; increments raise, since
    callers show the new value to the user.
    """

    def __init__(self, storage: DeviceStorage, key: str = DEFAULT_STUDY_COUNT_KEY, max_attempts: int = 20):
        self.storage = storage
        self.key = key
        self.max_attempts = max_attempts

    @staticmethod
    def _parse(raw) -> int:
        if not raw:
            return 0
        value = int(raw)
        return value if value > 0 else 0

    async def get(self) -> int:
        try:
            raw = await self.storage.get(self.key)
            return self._parse(raw)
        except Exception as e:
            logger.warning("Study count unreadable (key=%s), treating as 0: %s", self.key, e)
            return 0

    async def increment(self) -> int:
        """Atomically add one and return the new count.

        Read, then compare-and-set against the value read; a lost race rereads
        and tries again.
        """
        for _attempt in range(self.max_attempts):
            raw = await self.storage.get(self.key)
            try:
                current = self._parse(raw)
            except ValueError:
                # Corrupt value: start over from zero, but only if nobody rewrote it meanwhile
                logger.warning("Study count value %r is not an integer; resetting from 0", raw)
                current = 0
            new = current + 1
            if await self.storage.compare_and_set(self.key, raw, str(new)):
                logger.info("Study count incremented to %d (key=%s)", new, self.key)
                return new
        logger.error("Study count increment lost %d races in a row (key=%s)", self.max_attempts, self.key)
        raise StorageError(f"Could not increment study count after {self.max_attempts} attempts")
