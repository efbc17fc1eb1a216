"""
Interactive CLI for the IV Preparation Manager.
Log in, then run named commands with an optional JSON payload.
"""

import json
import logging
from getpass import getpass

import pandas as pd

from ivprep.commands import CommandSurface
from ivprep.config import LOG_LEVEL, MAX_PREVIEW_ROWS
from ivprep.database import Store
from ivprep.errors import AuthError, IVPrepError, StorageError

HELP_TEXT = """Usage: <command> [json-payload]
  e.g. patient.list {"date": "2026-10-16"}
       drug.list {"search": "cef"}
       worksheet.calculate {"patient_id": 1, "drug_id": 2, "dose": 15, "dose_unit": "mg/kg/dose"}
Type 'commands' to list command names, 'quit' to exit."""


def parse_line(line: str):
    """Split ``name {json}`` into the command name and a payload dict."""
    name, _, rest = line.strip().partition(" ")
    rest = rest.strip()
    if not rest:
        return name, {}
    payload = json.loads(rest)
    if not isinstance(payload, dict):
        raise ValueError("payload must be a JSON object")
    return name, payload


def render(result) -> str:
    """Tabulate row lists; pretty-print everything else."""
    if isinstance(result, list):
        if not result:
            return "(no rows returned)"
        df = pd.DataFrame(result)
        table = df.head(MAX_PREVIEW_ROWS).to_string(index=False)
        if len(df) > MAX_PREVIEW_ROWS:
            table += f"\n... ({len(df) - MAX_PREVIEW_ROWS} more rows)"
        return table
    if result is None:
        return "(not found)"
    return json.dumps(result, indent=2, ensure_ascii=False, default=str)


def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    print("=== IV Preparation Manager: command console ===\n")

    store = Store()
    try:
        store.open()
    except StorageError as e:
        print("\n[ERROR] Could not open the database.")
        print("Details:", e)
        return
    print(f"[init] Database: {store.db_path}")
    surface = CommandSurface(store)

    try:
        # ── Login ────────────────────────────────────────────────────
        try:
            username = input("Username (or 'quit'): ").strip()
            if not username or username.lower() in {"quit", "exit"}:
                print("Goodbye.")
                return
            password = getpass("Password: ")
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            return

        try:
            identity = surface.login(username, password)
        except AuthError:
            print("\n[ERROR] Login failed: invalid credentials.")
            return

        print(f"\n[auth] Logged in as: {identity.display_name} (role={identity.role})")
        print(f"[auth] Permissions: {', '.join(sorted(identity.permissions)) or '(none)'}")
        print(HELP_TEXT)

        # ── REPL ─────────────────────────────────────────────────────
        while True:
            try:
                line = input("\nivprep> ").strip()
            except (EOFError, KeyboardInterrupt):
                print("\nExiting.")
                break

            if not line:
                continue
            if line.lower() in {"quit", "exit"}:
                print("Goodbye.")
                break
            if line.lower() == "help":
                print(HELP_TEXT)
                continue
            if line.lower() == "commands":
                print("\n".join(surface.command_names))
                continue

            try:
                name, payload = parse_line(line)
            except ValueError as e:
                print("\n[INPUT ERROR] Could not parse the payload as a JSON object.")
                print("Details:", e)
                continue

            try:
                result = surface.invoke(name, identity, payload)
            except StorageError as e:
                print("\n[DB ERROR] Database error while running the command.")
                print("Details:", e)
                continue
            except IVPrepError as e:
                print(f"\n[{type(e).__name__}] {e}")
                continue

            print(render(result))
    finally:
        store.close()


if __name__ == "__main__":
    main()
