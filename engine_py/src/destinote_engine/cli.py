"""
Command line tool for inspecting saved rooms and editing the theme bank.
"""

import argparse
import sys
from typing import List, Optional

import orjson

from .selectors import fmt_phase_label, winner_name
from .serialization import state_to_dict
from .settings import EngineSettings, configure_logging
from .storage import FileBackend, RoomStore
from .themes import ThemeBank
from .utils import make_room_id

PHASE_CHOICES = ("p1", "p2")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="destinote-engine",
        description="Inspect and maintain locally saved Destinote game rooms",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  destinote-engine rooms                          # List saved rooms
  destinote-engine show ABC234                    # Summary of a room
  destinote-engine show ABC234 --json             # Full snapshot
  destinote-engine reset ABC234                   # Hard reset (also drops the setup draft)
  destinote-engine themes add p1 "A secret mission for the weekend"
        """
    )
    parser.add_argument(
        "--storage-dir",
        "-d",
        type=str,
        default=None,
        help="Directory holding the saved rooms (default: DESTINOTE_STORAGE_DIR or .destinote)"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("new-room", help="Print a fresh room id")
    sub.add_parser("rooms", help="List saved rooms")

    show = sub.add_parser("show", help="Show a saved room")
    show.add_argument("room_id")
    show.add_argument("--json", action="store_true", help="Print the full snapshot as JSON")

    reset = sub.add_parser("reset", help="Hard reset a room")
    reset.add_argument("room_id")
    reset.add_argument("--keep-draft", action="store_true", help="Keep the setup draft")

    themes = sub.add_parser("themes", help="Edit the theme bank")
    themes_sub = themes.add_subparsers(dest="themes_command", required=True)

    themes_list = themes_sub.add_parser("list", help="List themes")
    themes_list.add_argument("phase", nargs="?", choices=PHASE_CHOICES, default=None)

    for name, help_text in (("add", "Add a theme to the front of the list"), ("remove", "Remove a theme")):
        cmd = themes_sub.add_parser(name, help=help_text)
        cmd.add_argument("phase", choices=PHASE_CHOICES)
        cmd.add_argument("text")

    themes_sub.add_parser("reset", help="Restore the built-in themes")
    return parser


def _print_room(store: RoomStore, room_id: str, as_json: bool) -> int:
    state = store.load(room_id)
    if state is None:
        print(f"No saved game for room {room_id}")
        return 1

    if as_json:
        print(orjson.dumps(state_to_dict(state), option=orjson.OPT_INDENT_2).decode())
        return 0

    print(f"Room {state.room_id}: {fmt_phase_label(state.phase)}")
    print(f"Players: {', '.join(p.name for p in state.players) or '-'}")
    print(f"Cards written: {len(state.p1.cards)}, votes cast: {len(state.p1.votes)}")
    name = winner_name(state)
    if name:
        collective = state.reveal.phase2.collective_win
        print(f"Winner: {name}{' (collective win)' if collective else ''}")
    return 0


def _themes(bank: ThemeBank, args) -> int:
    if args.themes_command == "list":
        p1, p2 = bank.load()
        if args.phase in (None, "p1"):
            print("Phase 1:")
            for theme in p1:
                print(f"  - {theme}")
        if args.phase in (None, "p2"):
            print("Phase 2:")
            for theme in p2:
                print(f"  - {theme}")
    elif args.themes_command == "add":
        bank.add(args.phase, args.text)
        print(f"Added to {args.phase}: {args.text.strip()}")
    elif args.themes_command == "remove":
        bank.remove(args.phase, args.text)
        print(f"Removed from {args.phase}: {args.text}")
    elif args.themes_command == "reset":
        if not bank.reset():
            print("Could not write the theme bank")
            return 1
        print("Theme bank restored to defaults")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the ``destinote-engine`` command."""
    args = build_parser().parse_args(argv)

    settings = EngineSettings()
    configure_logging(settings.log_level)

    if args.command == "new-room":
        print(make_room_id())
        return 0

    backend = FileBackend(args.storage_dir or settings.storage_dir)
    store = RoomStore(backend, prefix=settings.key_prefix)

    if args.command == "rooms":
        for room_id in store.room_ids():
            print(room_id)
        return 0

    if args.command == "show":
        return _print_room(store, args.room_id, args.json)

    if args.command == "reset":
        store.hard_reset(args.room_id, clear_setup_draft=not args.keep_draft)
        print(f"Room {args.room_id} reset")
        return 0

    if args.command == "themes":
        return _themes(ThemeBank(backend), args)

    return 2


if __name__ == "__main__":
    sys.exit(main())
