"""CLI for database migrations (thin wrapper around alembic)."""
import argparse
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def _alembic(*args) -> int:
    return subprocess.call([sys.executable, "-m", "alembic", *args], cwd=str(ROOT))


def cmd_migrate(args):
    """Run alembic upgrade to a revision (head by default)."""
    return _alembic("upgrade", args.revision)


def cmd_downgrade(args):
    """Step back one revision, or to the given one."""
    return _alembic("downgrade", args.revision)


def cmd_stamp(args):
    """Stamp alembic revision (pass-through to alembic stamp)."""
    return _alembic("stamp", args.revision)


def cmd_current(args):
    return _alembic("current")


def build_parser():
    p = argparse.ArgumentParser(prog="migrations")
    sub = p.add_subparsers(dest="cmd")
    s = sub.add_parser("migrate", help="Run migrations (upgrade head)")
    s.add_argument("--revision", "-r", help="Target revision", default="head")
    s.set_defaults(func=cmd_migrate)
    s = sub.add_parser("downgrade", help="Downgrade the schema")
    s.add_argument("--revision", "-r", help="Target revision", default="-1")
    s.set_defaults(func=cmd_downgrade)
    s = sub.add_parser("stamp", help="Stamp alembic to a revision")
    s.add_argument("--revision", "-r", help="Revision to stamp", default="head")
    s.set_defaults(func=cmd_stamp)
    s = sub.add_parser("current", help="Show the current revision")
    s.set_defaults(func=cmd_current)
    return p


def main(argv=None):
    p = build_parser()
    args = p.parse_args(argv)
    if not hasattr(args, "func"):
        p.print_help()
        return 2
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
