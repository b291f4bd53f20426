#!/usr/bin/env python
"""Generate the asset-health OpenAPI document and manage its snapshot hash.

Usage:
  python backend/scripts/generate_spec.py --out backend/openapi.json
  python backend/scripts/generate_spec.py --update-hash
  python backend/scripts/generate_spec.py --check
  python backend/scripts/generate_spec.py --paths

Options:
  --out PATH        Write full spec JSON to PATH (directories auto-created)
  --update-hash     Recompute and overwrite tests/openapi_spec_hash.txt
  --check           Exit non-zero if current spec hash != snapshot (CI check)
  --paths           Print "METHOD path [permission]" lines, one per operation

Without flags, prints current hash to stdout.

Exit Codes:
  0 success / in-check mode hash matches
  2 mismatch in --check mode
  3 snapshot missing in --check mode
"""
from __future__ import annotations
import argparse, json, hashlib, pathlib, sys

BACKEND = pathlib.Path(__file__).resolve().parents[1]
SNAPSHOT = BACKEND / 'tests' / 'openapi_spec_hash.txt'
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from assetcare.openapi import build_openapi_spec  # noqa: E402


def compute_spec_and_hash():
    spec = build_openapi_spec()
    blob = json.dumps(spec, sort_keys=True, separators=(',', ':')).encode()
    return spec, hashlib.sha256(blob).hexdigest()


def operation_lines(spec) -> list[str]:
    lines = []
    for path, ops in sorted(spec['paths'].items()):
        for method, op in sorted(ops.items()):
            perms = ','.join(op.get('x-required-permissions', [])) or 'public'
            lines.append(f"{method.upper():6} {path} [{perms}]")
    return lines


def main(argv: list[str]) -> int:
    p = argparse.ArgumentParser(description="Generate deterministic OpenAPI spec")
    p.add_argument('--out', dest='out', help='Path to write JSON spec')
    p.add_argument('--update-hash', action='store_true', help='Overwrite snapshot hash file')
    p.add_argument('--check', action='store_true', help='Check current hash vs snapshot and exit 2 on mismatch')
    p.add_argument('--paths', action='store_true', help='List operations with required permissions')
    args = p.parse_args(argv)

    spec, h = compute_spec_and_hash()

    if args.out:
        out_path = pathlib.Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(spec, indent=2, sort_keys=True) + '\n')
        print(f"Wrote spec JSON to {out_path} ({len(json.dumps(spec))} bytes)")

    if args.paths:
        print('\n'.join(operation_lines(spec)))

    if args.check:
        if not SNAPSHOT.exists():
            print(f"No snapshot at {SNAPSHOT}; run with --update-hash first", file=sys.stderr)
            return 3
        expected = SNAPSHOT.read_text().strip()
        if h != expected:
            print(f"Spec hash mismatch: expected={expected} current={h}", file=sys.stderr)
            return 2
        print(f"Spec hash OK: {h}")

    if args.update_hash:
        SNAPSHOT.write_text(h + '\n')
        print(f"Updated snapshot hash -> {h}")

    if not (args.out or args.update_hash or args.check or args.paths):
        print(h)

    return 0


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main(sys.argv[1:]))
