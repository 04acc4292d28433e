"""
Config store: the only code that writes wg0.conf.

Every change is a read-modify-write cycle run under a lock (an asyncio lock
for this process, an flock on a side file for other processes). New text is
written to a temp file and renamed over wg0.conf, so readers never see a
partial file and never need the lock. A failed reload does not undo the write.
"""
import asyncio
import fcntl
import logging
import os
import tempfile
from contextlib import asynccontextmanager
from functools import lru_cache
from pathlib import Path
from typing import Any, Awaitable, Callable, List, NamedTuple, Optional, Tuple

from .backups import backup_config
from .config import WG_CONFIG_PATH, BACKUP_DIR, BACKUP_RETENTION
from .peers import ParsedConfig, PeerRecord
from .wg import WireGuardError, reload_wireguard
from .wgconf import generate_config, parse_config, validate_config

logger = logging.getLogger(__name__)

Transform = Callable[[ParsedConfig], Tuple[List[PeerRecord], Any]]
Reloader = Callable[[Path], Awaitable[Tuple[bool, str]]]


class MutationOutcome(NamedTuple):
    result: Any
    changed: bool
    warning: Optional[str] = None
    backup: Optional[Path] = None


class ConfigStore:
    def __init__(
        self,
        config_path: Path = WG_CONFIG_PATH,
        backup_dir: Path = BACKUP_DIR,
        reloader: Reloader = reload_wireguard,
        keep_backups: int = BACKUP_RETENTION,
    ):
        self.config_path = Path(config_path)
        self.backup_dir = Path(backup_dir)
        self.reloader = reloader
        self.keep_backups = keep_backups
        self._lock = asyncio.Lock()

    @property
    def lock_path(self) -> Path:
        return self.config_path.with_name(self.config_path.name + ".lock")

    def read_text(self) -> str:
        """Read wg0.conf content."""
        if not self.config_path.exists():
            raise WireGuardError(f"Config not found: {self.config_path}")
        return self.config_path.read_text()

    def load(self) -> ParsedConfig:
        return parse_config(self.read_text())

    async def mutate(self, transform: Transform) -> MutationOutcome:
        """
        Apply `transform` to the current peers and persist the result.

        `transform` receives the parsed config and returns (new_peers, result).
        Exceptions it raises abort the cycle before anything is written.
        When the peers come back unchanged nothing is written or reloaded.
        """
        async with self._exclusive():
            text = self.read_text()
            parsed = parse_config(text)
            peers, result = transform(parsed)
            if peers == parsed.peers:
                return MutationOutcome(result, changed=False)

            new_text = generate_config(parsed.interface, peers)
            backup = self._backup(text)
            self._write(new_text)
            warning = await self._reload()
        return MutationOutcome(result, True, warning, backup)

    async def replace_text(self, new_text: str) -> MutationOutcome:
        """Replace the whole file with administrator-supplied text."""
        parsed = validate_config(new_text)
        async with self._exclusive():
            backup = self._backup(self.read_text())
            self._write(new_text)
            warning = await self._reload()
        return MutationOutcome(parsed, True, warning, backup)

    @asynccontextmanager
    async def _exclusive(self):
        async with self._lock:
            fd = os.open(str(self.lock_path), os.O_RDWR | os.O_CREAT, 0o600)
            acquire = asyncio.ensure_future(asyncio.to_thread(fcntl.flock, fd, fcntl.LOCK_EX))
            try:
                await asyncio.shield(acquire)
            except BaseException:
                # the worker thread still waits on fd, release once it returns
                acquire.add_done_callback(lambda _: _release(fd))
                raise
            try:
                yield
            finally:
                _release(fd)

    def _backup(self, text: str) -> Optional[Path]:
        try:
            return backup_config(text, self.backup_dir, self.keep_backups)
        except OSError as e:
            logger.warning("Could not create backup: %s", e)
            return None

    def _write(self, content: str) -> None:
        temp_fd, temp_path = tempfile.mkstemp(
            dir=self.config_path.parent,
            prefix=f".{self.config_path.name}.",
            suffix='.tmp'
        )
        try:
            with os.fdopen(temp_fd, 'w') as tmp:
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(temp_path, 0o600)
            os.replace(temp_path, self.config_path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    async def _reload(self) -> Optional[str]:
        success, error = await self.reloader(self.config_path)
        if success:
            return None
        return f"WireGuard configuration not reloaded automatically: {error}"


def _release(fd: int) -> None:
    fcntl.flock(fd, fcntl.LOCK_UN)
    os.close(fd)


@lru_cache(maxsize=1)
def get_store() -> ConfigStore:
    """Process-wide store for the configured wg0.conf (FastAPI dependency)."""
    return ConfigStore()
