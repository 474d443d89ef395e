import argparse
import logging
import sys
from pathlib import Path

from .config import ProgressionConfig
from .errors import SaveError
from .logging_config import configure_logging
from .persistence.codec import encode_profile
from .service import ProgressionService

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="rollprogress",
        description="Inspect and maintain progression save slots",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Path to a user configuration YAML file to load/override defaults.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug logging.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("slots", help="List every save slot")

    status = sub.add_parser("status", help="Show progression of one slot")
    status.add_argument("--slot", type=int, default=0)

    export = sub.add_parser("export", help="Write a slot as readable JSON")
    export.add_argument("--slot", type=int, default=0)
    export.add_argument("-o", "--output", type=Path, default=None, help="Output file (default: stdout)")

    imp = sub.add_parser("import", help="Replace a slot with an exported JSON document")
    imp.add_argument("file", type=Path)
    imp.add_argument("--slot", type=int, default=0)

    delete = sub.add_parser("delete", help="Delete a slot file")
    delete.add_argument("--slot", type=int, required=True)
    return parser.parse_args(argv)


def _cmd_slots(service: ProgressionService) -> int:
    for summary in service.store.list_slots():
        if summary.is_empty:
            state = "empty"
        elif summary.is_corrupted:
            state = "corrupted"
        else:
            state = (
                f"{summary.player_name} L{summary.player_level} score={summary.total_score} "
                f"levels={summary.completed_levels} play={summary.play_time:.0f}s saved={summary.last_saved}"
            )
        print(f"[{summary.slot:02d}] {state}")
    return 0


def _cmd_status(service: ProgressionService, slot: int) -> int:
    profile = service.start(slot)
    stats = service.graph.stats()
    print(f"Player:        {profile.player_name} (level {profile.player_level}, {profile.experience} xp)")
    print(f"Score:         {profile.total_score}")
    print(f"Levels:        {stats.completed_levels}/{stats.total_levels} completed, {stats.unlocked_levels} unlocked")
    print(f"Achievements:  {service.tracker.unlocked_count()}/{len(service.tracker.all())}")
    print(f"Completion:    {profile.completion_percentage():.1f}%")
    recommended = service.graph.recommend_next(profile)
    if recommended is not None:
        print(f"Next up:       {recommended.display_name}")
    return 0


def _cmd_export(service: ProgressionService, slot: int, output) -> int:
    text = encode_profile(service.store.read_slot(slot))
    if output is None:
        sys.stdout.write(text + "\n")
    else:
        output.write_text(text, encoding="utf-8")
        logger.info("Exported slot %d to %s", slot, output)
    return 0


def _cmd_import(service: ProgressionService, slot: int, path: Path) -> int:
    text = path.read_text(encoding="utf-8")
    service.store.load(slot)
    service.store.import_json(text)
    service.store.save()
    print(f"Imported {path} into slot {slot}")
    return 0


def _cmd_delete(service: ProgressionService, slot: int) -> int:
    if service.store.delete_slot(slot):
        print(f"Deleted slot {slot}")
    else:
        print(f"Slot {slot} is already empty")
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.WARNING, cli=True)

    config = ProgressionConfig.load(user_path=args.config_path)
    # Maintenance commands never autosave behind the user's back
    config.persistence.autosave = False
    service = ProgressionService.create(config)
    try:
        if args.command == "slots":
            return _cmd_slots(service)
        if args.command == "status":
            return _cmd_status(service, args.slot)
        if args.command == "export":
            return _cmd_export(service, args.slot, args.output)
        if args.command == "import":
            return _cmd_import(service, args.slot, args.file)
        if args.command == "delete":
            return _cmd_delete(service, args.slot)
    except (SaveError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
