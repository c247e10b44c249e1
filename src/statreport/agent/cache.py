"""
Shared auxiliary-info cache.

Holds the latest geolocation info and the static system descriptor for
inclusion in reports. Each field is written by its own actor and replaced
wholesale; there is no cross-field consistency.
"""

import copy
import logging
import threading
from typing import Optional

from .models import AuxiliaryInfo, IpInfo, SysInfo

logger = logging.getLogger(__name__)


class SharedCache:
    """
    Last-write-wins store for AuxiliaryInfo.

    Reads never raise. If the lock cannot be taken within
    ``read_timeout`` seconds the previous snapshot is returned instead.
    """

    def __init__(self, read_timeout: float = 0.05):
        self.read_timeout = read_timeout
        self._lock = threading.Lock()
        self._ip_info: Optional[IpInfo] = None
        self._sys_info: Optional[SysInfo] = None
        self._last_snapshot = AuxiliaryInfo()

    def set_ip_info(self, info: IpInfo) -> None:
        with self._lock:
            self._ip_info = info

    def set_sys_info(self, info: SysInfo) -> None:
        with self._lock:
            self._sys_info = info

    def read(self) -> AuxiliaryInfo:
        """Return independent copies of whichever fields are present."""
        if not self._lock.acquire(timeout=self.read_timeout):
            logger.debug("Cache busy, serving previous snapshot")
            return copy.deepcopy(self._last_snapshot)
        try:
            snapshot = AuxiliaryInfo(
                ip_info=copy.deepcopy(self._ip_info),
                sys_info=copy.deepcopy(self._sys_info),
            )
            self._last_snapshot = snapshot
        finally:
            self._lock.release()
        return copy.deepcopy(snapshot)
