"""
Timestamped snapshots of wg0.conf.
A snapshot is taken before every write; only the newest BACKUP_RETENTION are kept.
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from .config import BACKUP_RETENTION

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "wg0.conf.backup."


def backup_name(now: datetime = None) -> str:
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    return BACKUP_PREFIX + stamp.replace(":", "-").replace(".", "-")


def list_backups(backup_dir: Path) -> List[Path]:
    """Backup files, newest first by modification time."""
    if not backup_dir.exists():
        return []
    files = []
    for path in backup_dir.iterdir():
        if not path.name.startswith(BACKUP_PREFIX):
            continue
        try:
            files.append((path.stat().st_mtime, path))
        except OSError as e:
            logger.warning("Could not stat backup file %s: %s", path.name, e)
    files.sort(key=lambda item: item[0], reverse=True)
    return [path for _, path in files]


def prune_backups(backup_dir: Path, keep: int = BACKUP_RETENTION) -> List[Path]:
    """Delete all but the `keep` newest backups. Returns what was removed."""
    removed = []
    for path in list_backups(backup_dir)[keep:]:
        try:
            path.unlink()
            removed.append(path)
        except OSError as e:
            logger.warning("Could not delete old backup %s: %s", path.name, e)
    return removed


def backup_config(text: str, backup_dir: Path, keep: int = BACKUP_RETENTION) -> Path:
    """Write `text` to a new timestamped backup and prune old ones."""
    backup_dir.mkdir(parents=True, exist_ok=True)
    path = backup_dir / backup_name()
    counter = 1
    while path.exists():
        path = backup_dir / f"{backup_name()}-{counter}"
        counter += 1
    path.write_text(text)
    path.chmod(0o600)
    prune_backups(backup_dir, keep)
    return path
