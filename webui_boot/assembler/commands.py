import logging
import shutil
import subprocess
from typing import Mapping, Sequence

_LOGGER = logging.getLogger(__name__)


class CommandError(RuntimeError):
    def __init__(self, cmd: Sequence[str] | str, returncode: int, output: str = "") -> None:
        self.cmd = cmd if isinstance(cmd, str) else " ".join(cmd)
        self.returncode = returncode
        self.output = output
        tail = output.strip().splitlines()[-5:] if output else []
        detail = ("\n" + "\n".join(tail)) if tail else ""
        super().__init__(f"`{self.cmd}` exited with {returncode}{detail}")


class CommandRunner:
    """Runs provisioning commands; a non-zero exit always raises."""

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self.env = dict(env) if env is not None else None

    def run(self, cmd: Sequence[str]) -> str:
        _LOGGER.info("exec: %s", " ".join(cmd))
        try:
            res = subprocess.run(list(cmd), env=self.env, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise CommandError(cmd, 127, str(exc)) from exc
        return self._check(cmd, res)

    def run_shell(self, script: str) -> str:
        _LOGGER.info("exec (shell): %s", script)
        res = subprocess.run(script, shell=True, env=self.env, capture_output=True, text=True)
        return self._check(script, res)

    def which(self, binary: str) -> str | None:
        return shutil.which(binary)

    @staticmethod
    def _check(cmd: Sequence[str] | str, res: subprocess.CompletedProcess) -> str:
        if res.returncode != 0:
            raise CommandError(cmd, res.returncode, (res.stdout or "") + (res.stderr or ""))
        return res.stdout or ""
