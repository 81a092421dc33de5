"""Interactive, confirmation-gated restore of the live database.

The orchestrator walks ``SELECTING -> CONFIRMING -> RESTORING`` and ends in
``DONE``, ``FAILED`` or ``CANCELLED``.  Prompting and the external client are
injected so the transitions can be driven without a terminal or a database.
"""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .database_url import RestoreTarget, parse_restore_target
from .errors import (
    BackupBusyError,
    BackupError,
    BackupNotFoundError,
    ErrorKind,
    ExternalToolError,
    InvalidSelectionError,
    classify_os_error,
)
from .inventory import BackupFile, DirectoryLister, list_backups
from .locking import directory_lock
from .settings import BackupSettings, NamingConvention

LOGGER = logging.getLogger(__name__)

AFFIRMATIVE_ANSWERS = frozenset({"y", "yes"})

_CLIENT_ENV_VARS: Dict[str, Tuple[str, ...]] = {
    "mysql": ("MYSQL_PATH", "MYSQL_BIN"),
    "postgresql": ("PSQL_PATH", "PSQL_BIN"),
}
_CLIENT_DEFAULTS = {"mysql": "mysql", "postgresql": "psql"}
_PASSWORD_ENV = {"mysql": "MYSQL_PWD", "postgresql": "PGPASSWORD"}


class RestoreState(str, Enum):
    SELECTING = "SELECTING"
    CONFIRMING = "CONFIRMING"
    RESTORING = "RESTORING"
    DONE = "DONE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True, slots=True)
class RunResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""


class RestoreRunner(Protocol):
    def run(self, path: Path, target: RestoreTarget) -> RunResult: ...


class RestorePrompt(Protocol):
    def select(self, backups: Sequence[BackupFile]) -> object: ...

    def confirm(self, backup: BackupFile, target: RestoreTarget) -> object: ...


@dataclass(frozen=True, slots=True)
class BinaryStatus:
    """Describe how a required external command is resolved."""

    name: str
    configured: str
    resolved: Optional[str]
    source: str

    @property
    def available(self) -> bool:
        return self.resolved is not None


def _select_binary(
    explicit: Optional[str],
    *,
    env_vars: Tuple[str, ...],
    default: str,
) -> Tuple[str, str]:
    """Return the binary path and describe how it was resolved."""

    if explicit:
        return explicit, "l'argument explicite"

    for env_var in env_vars:
        value = os.getenv(env_var)
        if value:
            return value, f"la variable d'environnement {env_var}"

    return default, "la valeur par défaut du système"


def _format_env_var_hint(env_vars: Tuple[str, ...]) -> str:
    if not env_vars:
        return ""
    if len(env_vars) == 1:
        return env_vars[0]
    return ", ".join(env_vars[:-1]) + f" ou {env_vars[-1]}"


def _resolve_binary_location(command: str) -> Optional[str]:
    """Return the absolute location of *command* if available."""

    path = Path(command)
    if path.is_absolute() or path.parent != Path("."):
        if path.exists() and os.access(path, os.X_OK):
            return str(path.resolve())
        return None

    return shutil.which(command)


def check_restore_tool(driver: str, explicit: Optional[str] = None) -> BinaryStatus:
    """Return diagnostic information about the restore client for *driver*."""

    default = _CLIENT_DEFAULTS[driver]
    configured, source = _select_binary(
        explicit, env_vars=_CLIENT_ENV_VARS[driver], default=default
    )
    return BinaryStatus(default, configured, _resolve_binary_location(configured), source)


class SubprocessRestoreRunner:
    """Feed a dump to ``mysql`` or ``psql`` and wait for it to finish."""

    def __init__(self, *, mysql_path: Optional[str] = None, psql_path: Optional[str] = None):
        self._explicit = {"mysql": mysql_path, "postgresql": psql_path}

    def build_command(self, binary: str, path: Path, target: RestoreTarget) -> List[str]:
        if target.driver == "mysql":
            command = [binary, "-h", target.host, "-P", str(target.port)]
            if target.user:
                command += ["-u", target.user]
            return command + [target.database]

        command = [binary, "-h", target.host, "-p", str(target.port)]
        if target.user:
            command += ["-U", target.user]
        return command + ["-d", target.database, "-v", "ON_ERROR_STOP=1", "-f", str(path)]

    def _prepare_env(self, target: RestoreTarget) -> dict:
        env = os.environ.copy()
        if target.password:
            env[_PASSWORD_ENV[target.driver]] = target.password
        return env

    def run(self, path: Path, target: RestoreTarget) -> RunResult:
        binary, source = _select_binary(
            self._explicit.get(target.driver),
            env_vars=_CLIENT_ENV_VARS[target.driver],
            default=_CLIENT_DEFAULTS[target.driver],
        )
        command = self.build_command(binary, path, target)
        env = self._prepare_env(target)

        try:
            if target.driver == "mysql":
                with open(path, "rb") as dump:
                    completed = subprocess.run(command, stdin=dump, capture_output=True, env=env)
            else:
                completed = subprocess.run(
                    command, stdin=subprocess.DEVNULL, capture_output=True, env=env
                )
        except FileNotFoundError as exc:
            if not Path(path).exists():
                raise BackupNotFoundError(f"Le fichier de sauvegarde '{path}' est introuvable.") from exc
            env_vars = _CLIENT_ENV_VARS[target.driver]
            raise ExternalToolError(
                f"L'outil '{_CLIENT_DEFAULTS[target.driver]}' est introuvable (chemin utilisé : "
                f"{binary!r} depuis {source}). Assurez-vous que le client est installé et "
                "présent dans le PATH ou définissez les variables d'environnement "
                f"{_format_env_var_hint(env_vars)}."
            ) from exc
        except OSError as exc:
            if exc.filename == str(path):
                raise
            raise ExternalToolError(
                f"Impossible de lancer '{binary}' (depuis {source}) : {exc}"
            ) from exc

        return RunResult(
            returncode=completed.returncode,
            stdout=completed.stdout.decode("utf-8", errors="replace"),
            stderr=completed.stderr.decode("utf-8", errors="replace"),
        )


def parse_selection(raw: object, count: int) -> int:
    """Convert a 1-based answer into a 0-based index within ``count`` items."""

    if isinstance(raw, bool):
        raise InvalidSelectionError(f"Sélection invalide: {raw!r}.")
    if isinstance(raw, int):
        number = raw
    else:
        text = str(raw if raw is not None else "").strip()
        if not text.isdecimal():
            raise InvalidSelectionError(f"Sélection invalide: {text!r} (attendu 1-{count}).")
        number = int(text)
    if not 1 <= number <= count:
        raise InvalidSelectionError(f"Sélection hors limites: {number} (attendu 1-{count}).")
    return number - 1


def is_affirmative(answer: object) -> bool:
    if answer is True:
        return True
    if not isinstance(answer, str):
        return False
    return answer.strip().lower() in AFFIRMATIVE_ANSWERS


class ConsolePrompt:
    """Line-oriented prompt on stdin/stdout."""

    def __init__(
        self,
        input_func: Optional[Callable[[str], str]] = None,
        output: Optional[Callable[[str], None]] = None,
    ):
        self._input = input_func or input
        self._output = output or print

    def _ask(self, message: str) -> str:
        try:
            return self._input(message)
        except EOFError:
            return ""

    def select(self, backups: Sequence[BackupFile]) -> object:
        self._output("\nSauvegardes disponibles :")
        self._output("─" * 80)
        for index, backup in enumerate(backups, start=1):
            self._output(f"{index}. {backup.name}")
            self._output(f"   Date : {backup.modified_at.astimezone():%Y-%m-%d %H:%M:%S}")
            self._output(f"   Taille : {backup.size_mb:.2f} MB")
        return self._ask(f"\nSauvegarde à restaurer (1-{len(backups)}) : ")

    def confirm(self, backup: BackupFile, target: RestoreTarget) -> object:
        self._output(f"\nSauvegarde sélectionnée : {backup.name}")
        self._output(f"Base cible : {target.describe()}")
        return self._ask(
            "ATTENTION : la base actuelle sera écrasée. Continuer ? (y/N) : "
        )


@dataclass
class ScriptedPrompt:
    """Prompt returning predetermined answers (CLI flags, tests)."""

    selection: object = None
    confirmation: object = None

    def select(self, backups: Sequence[BackupFile]) -> object:
        return self.selection

    def confirm(self, backup: BackupFile, target: RestoreTarget) -> object:
        return self.confirmation


@dataclass
class RestoreOutcome:
    state: RestoreState
    selected: Optional[BackupFile] = None
    confirmed: bool = False
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    returncode: Optional[int] = None
    diagnostics: str = ""

    @property
    def ok(self) -> bool:
        return self.state is RestoreState.DONE

    def as_dict(self) -> Dict[str, object]:
        return {
            "state": self.state.value,
            "selected": self.selected.as_dict() if self.selected else None,
            "confirmed": self.confirmed,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "message": self.message,
            "returncode": self.returncode,
            "diagnostics": self.diagnostics,
        }


@dataclass
class RestoreOrchestrator:
    directory: Path
    database_url: Optional[str]
    prompt: RestorePrompt
    runner: RestoreRunner = field(default_factory=SubprocessRestoreRunner)
    convention: NamingConvention = field(default_factory=NamingConvention)
    lister: Optional[DirectoryLister] = None
    lock_timeout: Optional[float] = None
    history: List[RestoreState] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        self.directory = Path(self.directory)

    @classmethod
    def from_settings(
        cls, settings: BackupSettings, prompt: RestorePrompt, **overrides
    ) -> "RestoreOrchestrator":
        params = {
            "directory": settings.backup_dir,
            "database_url": settings.database_url,
            "convention": settings.convention,
            "prompt": prompt,
        }
        params.update(overrides)
        return cls(**params)

    @property
    def state(self) -> Optional[RestoreState]:
        return self.history[-1] if self.history else None

    def _enter(self, state: RestoreState) -> None:
        LOGGER.debug("Restauration: %s -> %s", self.state, state.value)
        self.history.append(state)

    def _fail(self, exc: BackupError, **details) -> RestoreOutcome:
        self._enter(RestoreState.FAILED)
        LOGGER.error("Restauration échouée: %s", exc)
        return RestoreOutcome(RestoreState.FAILED, error_kind=exc.kind, message=str(exc), **details)

    def run(self) -> RestoreOutcome:
        self.history.clear()
        try:
            with directory_lock(self.directory, timeout=self.lock_timeout):
                return self._run_locked()
        except BackupBusyError as exc:
            return self._fail(exc)

    def _run_locked(self) -> RestoreOutcome:
        self._enter(RestoreState.SELECTING)
        try:
            backups = list_backups(self.directory, convention=self.convention, lister=self.lister)
        except BackupError as exc:
            return self._fail(exc)
        if not backups:
            return self._fail(
                BackupNotFoundError(f"Aucune sauvegarde trouvée dans {self.directory}.")
            )

        try:
            target = parse_restore_target(self.database_url)
            index = parse_selection(self.prompt.select(backups), len(backups))
        except BackupError as exc:
            return self._fail(exc)
        selected = backups[index]
        LOGGER.info("Sauvegarde sélectionnée: %s", selected.name)

        self._enter(RestoreState.CONFIRMING)
        if not is_affirmative(self.prompt.confirm(selected, target)):
            self._enter(RestoreState.CANCELLED)
            LOGGER.info("Restauration annulée par l'opérateur.")
            return RestoreOutcome(
                RestoreState.CANCELLED,
                selected=selected,
                error_kind=ErrorKind.DECLINED,
                message="Restauration annulée.",
            )

        if not selected.path.is_file():
            return self._fail(
                BackupNotFoundError(f"Le fichier de sauvegarde '{selected.name}' a disparu."),
                selected=selected,
                confirmed=True,
            )

        self._enter(RestoreState.RESTORING)
        LOGGER.info("Restauration de %s depuis %s…", target.describe(), selected.name)
        try:
            result = self.runner.run(selected.path, target)
        except BackupError as exc:
            return self._fail(exc, selected=selected, confirmed=True)
        except OSError as exc:
            self._enter(RestoreState.FAILED)
            LOGGER.error("Restauration échouée: %s", exc)
            return RestoreOutcome(
                RestoreState.FAILED,
                selected=selected,
                confirmed=True,
                error_kind=classify_os_error(exc),
                message=str(exc),
            )

        diagnostics = "\n".join(part for part in (result.stderr, result.stdout) if part).strip()
        if result.returncode != 0:
            self._enter(RestoreState.FAILED)
            LOGGER.error("Le client de restauration a échoué (code %s): %s", result.returncode, diagnostics)
            return RestoreOutcome(
                RestoreState.FAILED,
                selected=selected,
                confirmed=True,
                error_kind=ErrorKind.EXTERNAL_TOOL_FAILURE,
                message=f"Le client de restauration a échoué (code {result.returncode}).",
                returncode=result.returncode,
                diagnostics=diagnostics,
            )

        if result.stderr.strip():
            LOGGER.warning("Avertissements du client de restauration: %s", result.stderr.strip())
        self._enter(RestoreState.DONE)
        LOGGER.info("Base restaurée avec succès depuis %s.", selected.name)
        return RestoreOutcome(
            RestoreState.DONE,
            selected=selected,
            confirmed=True,
            message="Base restaurée avec succès.",
            returncode=result.returncode,
            diagnostics=diagnostics,
        )


__all__ = [
    "BinaryStatus",
    "ConsolePrompt",
    "RestoreOrchestrator",
    "RestoreOutcome",
    "RestorePrompt",
    "RestoreRunner",
    "RestoreState",
    "RunResult",
    "ScriptedPrompt",
    "SubprocessRestoreRunner",
    "check_restore_tool",
    "is_affirmative",
    "parse_selection",
]
