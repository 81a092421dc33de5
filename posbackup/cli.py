"""CLI de gestion des sauvegardes (rétention, nettoyage, restauration)."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .database_url import parse_restore_target
from .errors import BackupBusyError, BackupError, ErrorKind, InvalidPolicyError
from .inventory import compute_backup_statistics, list_backups
from .reports import BackupListResponse, RestoreReportSchema, RetentionReportSchema
from .restore import (
    ConsolePrompt,
    RestoreOrchestrator,
    RestoreState,
    SubprocessRestoreRunner,
    check_restore_tool,
)
from .retention import RetentionEnforcer, RetentionReport
from .settings import BackupSettings, known_locations, resolve_log_level

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PARTIAL = 2
EXIT_CANCELLED = 3
EXIT_BUSY = 4

LOGGER = logging.getLogger("posbackup")


class _PresetPrompt(ConsolePrompt):
    """Console prompt whose answers can be fixed from the command line."""

    def __init__(self, selection: Optional[str] = None, assume_yes: bool = False, **kwargs):
        super().__init__(**kwargs)
        self._selection = selection
        self._assume_yes = assume_yes

    def select(self, backups):
        if self._selection is not None:
            return self._selection
        return super().select(backups)

    def confirm(self, backup, target):
        if self._assume_yes:
            return "y"
        return super().confirm(backup, target)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--backup-dir", type=Path, help="Répertoire des sauvegardes (BACKUP_DIR).")
    common.add_argument("--env-file", type=Path, help="Fichier .env à charger avant la configuration.")
    common.add_argument("--json", action="store_true", help="Affiche le rapport au format JSON.")
    common.add_argument("--log-level", help="Niveau de journalisation (LOG_LEVEL).")

    parser = argparse.ArgumentParser(
        prog="posbackup",
        description="Gestion des sauvegardes de la base du point de vente.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", parents=[common], help="Liste les sauvegardes, de la plus récente à la plus ancienne.")

    cleanup = sub.add_parser("cleanup", parents=[common], help="Supprime les sauvegardes au-delà de la limite.")
    cleanup.add_argument("--keep", type=int, help="Nombre de sauvegardes à conserver (BACKUP_KEEP_COUNT).")
    cleanup.add_argument("--workers", type=int, default=1, help="Suppressions en parallèle.")
    cleanup.add_argument("--no-wait", action="store_true", help="Échoue si une autre opération est en cours.")

    prune = sub.add_parser("prune-empty", parents=[common], help="Supprime les sauvegardes vides.")
    prune.add_argument("--no-wait", action="store_true", help="Échoue si une autre opération est en cours.")

    restore = sub.add_parser("restore", parents=[common], help="Restaure la base depuis une sauvegarde.")
    restore.add_argument("--select", help="Numéro de la sauvegarde (1 = la plus récente).")
    restore.add_argument("--yes", action="store_true", help="Confirme la restauration sans question.")
    restore.add_argument("--database-url", help="Chaîne de connexion (DATABASE_URL).")
    restore.add_argument("--mysql-path", help="Chemin du client mysql.")
    restore.add_argument("--psql-path", help="Chemin du client psql.")
    restore.add_argument("--lock-timeout", type=float, help="Attente maximale du verrou (secondes).")

    sub.add_parser("locations", parents=[common], help="Affiche les emplacements de sauvegarde connus.")
    sub.add_parser("doctor", parents=[common], help="Vérifie la configuration et le client de restauration.")
    return parser


def _print_retention(report: RetentionReport, as_json: bool) -> int:
    if as_json:
        print(RetentionReportSchema.from_report(report).model_dump_json(indent=2))
    else:
        print(f"{report.deleted} sauvegarde(s) supprimée(s), {report.kept} conservée(s).")
        for error in report.errors:
            print(f"  échec {error.file}: [{error.kind.value}] {error.message}", file=sys.stderr)
    return EXIT_OK if report.ok else EXIT_PARTIAL


def _cmd_list(settings: BackupSettings, args) -> int:
    backups = list_backups(settings.backup_dir, convention=settings.convention)
    if args.json:
        print(BackupListResponse.build(str(settings.backup_dir), backups).model_dump_json(indent=2))
        return EXIT_OK
    if not backups:
        print(f"Aucune sauvegarde dans {settings.backup_dir}.")
        return EXIT_OK
    for index, backup in enumerate(backups, start=1):
        print(f"{index:>3}. {backup.name}  {backup.modified_at.astimezone():%Y-%m-%d %H:%M:%S}  {backup.size_mb:.2f} MB")
    stats = compute_backup_statistics(backups)
    print(f"Total : {stats['count']} sauvegarde(s), {stats['total_size_mb']:.2f} MB")
    return EXIT_OK


def _cmd_cleanup(settings: BackupSettings, args) -> int:
    enforcer = RetentionEnforcer.from_settings(
        settings,
        keep_count=args.keep if args.keep is not None else settings.keep_count,
        max_workers=max(1, args.workers),
    )
    return _print_retention(enforcer.run(blocking=not args.no_wait), args.json)


def _cmd_prune_empty(settings: BackupSettings, args) -> int:
    enforcer = RetentionEnforcer.from_settings(settings)
    return _print_retention(enforcer.prune_empty(blocking=not args.no_wait), args.json)


def _cmd_restore(settings: BackupSettings, args) -> int:
    prompt = _PresetPrompt(selection=args.select, assume_yes=args.yes)
    orchestrator = RestoreOrchestrator.from_settings(
        settings,
        prompt,
        database_url=args.database_url or settings.database_url,
        runner=SubprocessRestoreRunner(mysql_path=args.mysql_path, psql_path=args.psql_path),
        lock_timeout=args.lock_timeout,
    )
    outcome = orchestrator.run()
    if args.json:
        print(RestoreReportSchema.from_outcome(outcome).model_dump_json(indent=2))
    else:
        print(outcome.message)
        if outcome.diagnostics:
            stream = sys.stdout if outcome.ok else sys.stderr
            print(outcome.diagnostics, file=stream)
        if outcome.ok:
            print("Pensez à redémarrer le serveur applicatif.")

    if outcome.state is RestoreState.DONE:
        return EXIT_OK
    if outcome.state is RestoreState.CANCELLED:
        return EXIT_CANCELLED
    if outcome.error_kind is ErrorKind.BUSY:
        return EXIT_BUSY
    return EXIT_FAILED


def _cmd_locations(settings: BackupSettings, args) -> int:
    print(f"Répertoire actif : {settings.backup_dir}")
    for name, location in known_locations().items():
        print(f"  {name:<10} {location}")
    print("Définissez BACKUP_DIR ou BACKUP_LOCATION pour changer d'emplacement.")
    print(f"Conservation : {settings.keep_count} sauvegarde(s)")
    print(f"Préfixes : {', '.join(settings.convention.prefixes)}  Extension : {settings.convention.suffix}")
    return EXIT_OK


def _cmd_doctor(settings: BackupSettings, args) -> int:
    status = EXIT_OK
    if settings.backup_dir.is_dir():
        print(f"OK  répertoire {settings.backup_dir}")
    else:
        print(f"KO  répertoire introuvable : {settings.backup_dir}")
        status = EXIT_FAILED
    target = parse_restore_target(settings.database_url)
    print(f"OK  base cible {target.describe()}")
    tool = check_restore_tool(target.driver)
    if tool.available:
        print(f"OK  {tool.name} : {tool.resolved} ({tool.source})")
    else:
        print(f"KO  {tool.name} introuvable ({tool.configured!r} depuis {tool.source})")
        status = EXIT_FAILED
    return status


_COMMANDS = {
    "list": _cmd_list,
    "cleanup": _cmd_cleanup,
    "prune-empty": _cmd_prune_empty,
    "restore": _cmd_restore,
    "locations": _cmd_locations,
    "doctor": _cmd_doctor,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.env_file:
        load_dotenv(args.env_file)
    else:
        load_dotenv()

    try:
        settings = BackupSettings.load()
    except InvalidPolicyError as exc:
        print(f"Configuration invalide : {exc}", file=sys.stderr)
        return EXIT_FAILED
    if args.backup_dir is not None:
        settings = replace(settings, backup_dir=args.backup_dir)

    logging.basicConfig(
        level=resolve_log_level(args.log_level or settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return _COMMANDS[args.command](settings, args)
    except BackupBusyError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_BUSY
    except BackupError as exc:
        LOGGER.debug("Commande %s échouée", args.command, exc_info=True)
        print(f"Échec : {exc}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
