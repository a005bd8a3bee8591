"""
Administrative CLI for the Dental Checkup Portal.
Create the schema, onboard dentists and inspect the public directory.
"""

import argparse
import getpass
import sys

from checkup_portal.config import ROLE_DENTIST
from checkup_portal.database import init_engine
from checkup_portal.directory import list_dentists
from checkup_portal.errors import PortalError
from checkup_portal.identity import register


def cmd_init_db(engine, args):
    print("[init] Schema is up to date.")
    return 0


def cmd_add_dentist(engine, args):
    password = args.password
    if not password:
        try:
            password = getpass.getpass(f"Password for dentist '{args.username}': ")
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            return 1

    try:
        identity = register(engine, args.username, password, ROLE_DENTIST)
    except PortalError as e:
        print("\n[ERROR] Could not register dentist.")
        print("Details:", e.message)
        return 1

    print(f"[auth] Registered dentist {identity.username} (id={identity.id})")
    return 0


def cmd_list_dentists(engine, args):
    dentists = list_dentists(engine)
    if not dentists:
        print("(no dentists registered)")
        return 0
    for d in dentists:
        print(f"  {d['id']:>5}  {d['username']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="checkup-portal", description=__doc__.strip())
    parser.add_argument("--db-uri", help="Override DB_URI for this command")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create the database tables")
    p.set_defaults(func=cmd_init_db)

    p = sub.add_parser("add-dentist", help="Register a dentist account")
    p.add_argument("username")
    p.add_argument("--password", help="Prompted for when omitted")
    p.set_defaults(func=cmd_add_dentist)

    p = sub.add_parser("list-dentists", help="Print the dentist directory")
    p.set_defaults(func=cmd_list_dentists)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    engine = init_engine(args.db_uri)
    return args.func(engine, args)


if __name__ == "__main__":
    sys.exit(main())
