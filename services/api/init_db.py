"""
One-click setup / repair of the FARCO database spreadsheet.

Creates any missing tabs (Batches, Items, Selections, Photos) and appends
missing header columns. Existing columns and data are never touched, so it
is safe to run as often as you like.

Run:
    python init_db.py
"""

import sys

from adapters.sheets import SHEET_TAB_ORDER, open_store
from core.assessment import AssessmentService
from core.errors import AssessmentError
from core.properties import PropertyStore
from settings import get_settings


def main() -> int:
    settings = get_settings()
    print("🔧 Initializing FARCO database spreadsheet...")

    try:
        store = open_store(settings)
        # Setup only touches the spreadsheet; no Drive access needed
        service = AssessmentService(
            store=store,
            files=None,
            props=PropertyStore(settings.properties_file),
            tz=settings.timezone,
        )
        result = service.initialize_database()
    except AssessmentError as e:
        print(f"✗ Setup failed: {e}")
        return 1

    print(f"✓ Spreadsheet: {result['documentUrl']}\n")
    for name in SHEET_TAB_ORDER:
        print(f"   • {name:<11} → {result['sheets'][name]}")
    print("\n✅ SETUP COMPLETE!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
