#!/usr/bin/env python3
"""
Seed Data Loader

Loads ports, routes and shipments from the samples folder (or any folder
with the same file names) into the ledger database. Files are loaded in
dependency order: ports, then routes, then shipments.

Usage:
    python scripts/load_samples.py
    python scripts/load_samples.py --folder samples --only ports
"""
import sys
import argparse
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shipledger.config import get_settings
from shipledger.models.base import SessionLocal, init_db
from shipledger.services.import_service import ImportService

LOAD_ORDER = ['ports', 'routes', 'shipments']


def load_folder(folder: Path, only=None) -> dict:
    """Import every known CSV in ``folder``; returns the summary per file."""
    results = {}
    db = SessionLocal()
    try:
        service = ImportService(db)
        importers = {
            'ports': service.import_ports,
            'routes': service.import_routes,
            'shipments': service.import_shipments,
        }
        for kind in LOAD_ORDER:
            if only and kind not in only:
                continue
            path = folder / f"{kind}.csv"
            if not path.exists():
                print(f"  {path} not found, skipping")
                continue
            print(f"\nLoading {path}")
            result = importers[kind](path.read_text(encoding='utf-8-sig'))
            results[kind] = result
            if not result.get('success'):
                print(f"  Failed: {result.get('error')}")
                continue
            print(f"  Created: {result['created']}  Updated: {result['updated']}  Skipped: {result['skipped']}")
            for error in result['errors']:
                print(f"  ! {error}")
    finally:
        db.close()
    return results


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description='Load seed CSV files into the shipping ledger')
    parser.add_argument('--folder', default=settings.samples_dir, help='Folder containing ports.csv, routes.csv, shipments.csv')
    parser.add_argument('--only', nargs='+', choices=LOAD_ORDER, help='Load only these files')

    args = parser.parse_args()

    init_db()
    print(f"Database: {settings.database_url}")
    results = load_folder(Path(args.folder), only=args.only)

    failed = [kind for kind, r in results.items() if not r.get('success') or r.get('errors')]
    if failed:
        print(f"\nFinished with problems in: {', '.join(failed)}")
        sys.exit(1)
    print("\nDone")


if __name__ == '__main__':
    main()
