#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.store import create_store_from_env


def main() -> int:
    parser = argparse.ArgumentParser(description="Export or import the durable store snapshot.")
    parser.add_argument("--output", default="", help="write the snapshot to this file instead of stdout")
    parser.add_argument(
        "--import-file",
        default="",
        help="restore this snapshot file into the configured backend and save it",
    )
    args = parser.parse_args()

    store = create_store_from_env()
    if args.import_file:
        payload = json.loads(Path(args.import_file).read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            print(json.dumps({"success": False, "error": "snapshot must be a JSON object"}, ensure_ascii=True))
            return 1
        store.restore(payload)
        store.save_state()
        summary = {
            "success": True,
            "imported": args.import_file,
            "identities": store.count_identities(),
            "records": store.count_records(),
        }
        print(json.dumps(summary, ensure_ascii=True, sort_keys=True))
        return 0

    blob = json.dumps(store.snapshot(), ensure_ascii=True, sort_keys=True, indent=2)
    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(blob, encoding="utf-8")
        print(json.dumps({"success": True, "output": str(out_path)}, ensure_ascii=True))
    else:
        print(blob)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
