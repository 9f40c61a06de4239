"""
Host Directory: read-only view of registered hosts used by ingestion.
"""
import threading
from abc import ABC, abstractmethod
from typing import Iterable, Optional

import psycopg2

from monitoring_center.errors import StorageError
from monitoring_center.schemas import Host, HostStatus


class HostDirectory(ABC):
    """Base class for host lookups"""

    @abstractmethod
    def get(self, host_id: str) -> Optional[Host]:
        """Return the host, or None if it is not registered"""
        pass

    @abstractmethod
    def find_master(self) -> Optional[Host]:
        """Return the online host with the highest priority, or None"""
        pass

    def exists(self, host_id: str) -> bool:
        return self.get(host_id) is not None


class PostgresHostDirectory(HostDirectory):
    """Reads host records from the hosts table"""

    def __init__(self, database):
        self.database = database

    def get(self, host_id: str) -> Optional[Host]:
        # Compare as text so a non-UUID id is a miss, not a cast error
        query = """
            SELECT id::text AS id, name, ip, priority, status, created_at, updated_at
            FROM hosts
            WHERE id::text = %s
        """
        try:
            with self.database.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, (host_id,))
                    row = cur.fetchone()
        except psycopg2.Error as e:
            raise StorageError(f"Failed to look up host {host_id}: {e}") from e

        return Host(**row) if row else None

    def find_master(self) -> Optional[Host]:
        # Equal priorities fall back to the oldest registration
        query = """
            SELECT id::text AS id, name, ip, priority, status, created_at, updated_at
            FROM hosts
            WHERE status = %s
            ORDER BY priority DESC, created_at ASC, id ASC
            LIMIT 1
        """
        try:
            with self.database.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, (HostStatus.ONLINE.value,))
                    row = cur.fetchone()
        except psycopg2.Error as e:
            raise StorageError(f"Failed to find master host: {e}") from e

        return Host(**row) if row else None


class InMemoryHostDirectory(HostDirectory):
    """Process-local host registry for --storage memory and tests"""

    def __init__(self, hosts: Iterable[Host] = ()):
        self._lock = threading.Lock()
        self._hosts = {}
        self._order = []
        for host in hosts:
            self.add(host)

    def add(self, host: Host) -> None:
        with self._lock:
            if host.id not in self._hosts:
                self._order.append(host.id)
            self._hosts[host.id] = host

    def get(self, host_id: str) -> Optional[Host]:
        with self._lock:
            return self._hosts.get(host_id)

    def find_master(self) -> Optional[Host]:
        with self._lock:
            online = [
                (position, self._hosts[host_id])
                for position, host_id in enumerate(self._order)
                if self._hosts[host_id].status == HostStatus.ONLINE
            ]
        if not online:
            return None
        # Highest priority; earliest registration wins a tie
        return min(online, key=lambda item: (-item[1].priority, item[0]))[1]
