"""
Backup restore script.
Lists the wg0.conf snapshots taken by the panel, or restores one of them.
The current file is itself backed up before being replaced, and WireGuard is reloaded.
"""
import asyncio
import os
import sys
from datetime import datetime

from wgpanel.backups import list_backups
from wgpanel.config import BACKUP_DIR
from wgpanel.store import ConfigStore
from wgpanel.wgconf import parse_config


def show_backups():
    backups = list_backups(BACKUP_DIR)
    if not backups:
        print(f"No backups in {BACKUP_DIR}")
        return
    for path in backups:
        modified = datetime.fromtimestamp(path.stat().st_mtime).isoformat(timespec="seconds")
        peers = parse_config(path.read_text()).peers
        enabled = sum(1 for peer in peers if peer.enabled)
        print(f"{path.name}  {modified}  {len(peers)} peers ({enabled} enabled)")


async def restore(name: str):
    path = BACKUP_DIR / name
    if path.parent != BACKUP_DIR or not path.is_file():
        print(f"Error: no backup named {name}")
        sys.exit(1)

    outcome = await ConfigStore().replace_text(path.read_text())
    print(f"Restored {name} ({len(outcome.result.peers)} peers)")
    if outcome.backup:
        print(f"Previous config saved as {outcome.backup.name}")
    if outcome.warning:
        print(f"Warning: {outcome.warning}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        show_backups()
        sys.exit(0)

    if os.geteuid() != 0:
        print("Error: Must run as root")
        sys.exit(1)
    asyncio.run(restore(sys.argv[1]))
