import grp
import logging
from dataclasses import dataclass
from pathlib import Path

from .commands import CommandRunner

_LOGGER = logging.getLogger(__name__)

APP_USER = "app"
APP_GROUP = "app"


@dataclass(frozen=True)
class Identity:
    uid: int
    gid: int
    home_dir: Path
    username: str = "root"
    created_user: bool = False
    created_group: bool = False

    @property
    def is_root(self) -> bool:
        return self.uid == 0


def _group_exists(gid: int) -> bool:
    try:
        grp.getgrgid(gid)
        return True
    except KeyError:
        return False


def resolve_identity(runner: CommandRunner, uid: int, gid: int, home: Path) -> Identity:
    """Create the runtime user/group when a non-root uid is requested.

    The home directory is recorded on the user but not populated. Command
    failures propagate; a half-created identity must stop the build.
    """
    if uid == 0:
        _LOGGER.info("uid=0 requested; running as the image default identity")
        return Identity(uid=0, gid=gid, home_dir=home)

    created_group = False
    if gid != 0 and not _group_exists(gid):
        runner.run(["addgroup", "--gid", str(gid), APP_GROUP])
        created_group = True
    elif gid != 0:
        _LOGGER.info("group with gid=%s already exists; reusing it", gid)

    runner.run(
        [
            "adduser",
            "--uid", str(uid),
            "--gid", str(gid),
            "--home", str(home),
            "--disabled-password",
            "--no-create-home",
            "--gecos", "",
            APP_USER,
        ]
    )
    _LOGGER.info("created user %s uid=%s gid=%s home=%s", APP_USER, uid, gid, home)
    return Identity(
        uid=uid,
        gid=gid,
        home_dir=home,
        username=APP_USER,
        created_user=True,
        created_group=created_group,
    )
