#!/usr/bin/env python3
"""
Admin CLI: list, show, create, update and delete records.

Usage (from project root):
    python scripts/admin_cli.py list client
    python scripts/admin_cli.py show session s3
    python scripts/admin_cli.py create client nom=Alice email=a@x.com
    python scripts/admin_cli.py update client c1 email=alice@x.com
    python scripts/admin_cli.py delete service s2

Resources: client, service, session.
Reads ADMIN_TRANSPORT / ADMIN_API_BASE_URL like scripts/run.py.
"""

import asyncio
import logging
import os
import sys
from dataclasses import asdict

# Allow running as `python scripts/admin_cli.py` from project root.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.adapters.factory import create_transport
from src.admin import AdminClient, AdminConfig, ResourceHandle
from src.domain.mutations import MutationRecord

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s  %(levelname)-7s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def _fields(args: list[str]) -> dict:
    fields = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if not sep:
            raise SystemExit(f"Expected key=value, got {arg!r}")
        fields[key] = value
    return fields


def _row(record) -> str:
    data = asdict(record)
    data.pop("created_at", None)
    data.pop("updated_at", None)
    record_id = data.pop("id")
    preview = "  ".join(f"{k}={v}" for k, v in data.items() if v not in (None, [], ""))
    return f"{record_id:>6}  {preview[:70]}"


def _report(outcome: MutationRecord) -> None:
    m = outcome.mutation
    if not outcome.ok:
        print(f"{m.kind} {m.resource} failed: {outcome.error}")
        return
    if outcome.record is not None:
        print(f"{m.kind} {m.resource} ok:")
        print(_row(outcome.record))
    else:
        print(f"{m.kind} {m.resource} {m.record_id or ''} ok.")


async def list_records(handle: ResourceHandle) -> None:
    state = await handle.fetch_list()
    if state.status == "failed":
        print(f"Could not list {handle.name}: {state.error}")
        return
    if not state.data:
        print(f"No {handle.name} records.")
        return
    print(f"\n{'ID':>6}  Fields")
    print("-" * 80)
    for record in state.data:
        print(_row(record))
    print()


async def show_record(handle: ResourceHandle, record_id: str) -> None:
    state = await handle.fetch(record_id)
    if state.status == "failed":
        print(f"{handle.name} {record_id}: {state.error}")
        return
    for key, value in asdict(state.data).items():
        print(f"  {key:<14} {value}")


async def main() -> None:
    if len(sys.argv) < 3:
        print(__doc__)
        return

    cmd, resource, rest = sys.argv[1], sys.argv[2], sys.argv[3:]
    admin = AdminClient(AdminConfig(transport=create_transport()))
    try:
        handle = admin.resource(resource)
        if cmd == "list":
            await list_records(handle)
        elif cmd == "show" and rest:
            await show_record(handle, rest[0])
        elif cmd == "create":
            _report(await handle.create(**_fields(rest)))
        elif cmd == "update" and len(rest) >= 2:
            _report(await handle.update(rest[0], **_fields(rest[1:])))
        elif cmd == "delete" and rest:
            _report(await handle.delete(rest[0]))
        else:
            print(__doc__)
    finally:
        await admin.close()


if __name__ == "__main__":
    asyncio.run(main())
