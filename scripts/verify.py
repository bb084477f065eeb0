"""
Delivery Archive Verification Script

Verifies data integrity of the delivered-orders Excel archive.
Run from project root: python scripts/verify.py
"""

import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from delivery_desk.core.config import get_settings
from delivery_desk.services.archive import DeliveryArchive

settings = get_settings()
ARCHIVE_FILE = os.path.join(settings.data_directory, settings.archive_filename)


def verify_archive() -> bool:
    """Verify the archive after a simulation run."""

    print("=" * 60)
    print("🔍 DELIVERY ARCHIVE REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {ARCHIVE_FILE}")
    print("=" * 60)

    if not os.path.exists(ARCHIVE_FILE):
        print("\n❌ Archive file not found!")
        print("   Run the simulation first: python scripts/simulate.py")
        return False

    try:
        df = pd.read_excel(ARCHIVE_FILE, engine='openpyxl')
        print(f"\n✅ File loaded successfully!")
    except Exception as e:
        print(f"\n❌ Could not read archive: {e}")
        return False

    print(f"\n📊 STATISTICS:")
    print(f"   Delivered Orders: {len(df)}")
    print(f"   Columns: {len(df.columns)}")

    missing = [col for col in DeliveryArchive.COLUMNS if col not in df.columns]
    if missing:
        print(f"\n⚠️ Missing Columns: {missing}")
    else:
        print(f"\n✅ All archive columns present")

    if 'order_id' in df.columns:
        duplicates = df['order_id'].duplicated().sum()
        if duplicates > 0:
            print(f"\n⚠️ {duplicates} duplicate order IDs found!")
        else:
            print(f"✅ No duplicate order IDs")

    if 'display_tag' in df.columns:
        malformed = df[~df['display_tag'].astype(str).str.match(r'^(DEL|ASP)_[A-Z-]+_\S+$')]
        if len(malformed) > 0:
            print(f"⚠️ {len(malformed)} display tag(s) out of format")
        else:
            print(f"✅ All display tags well-formed")

    if 'platform' in df.columns:
        print(f"\n🛵 BY PLATFORM:")
        for platform, count in df['platform'].value_counts().items():
            print(f"   {platform}: {count}")

    if 'total_amount' in df.columns:
        print(f"\n💰 REVENUE:")
        print(f"   Total: €{df['total_amount'].sum():.2f}")
        print(f"   Average: €{df['total_amount'].mean():.2f}")

    print(f"\n📋 RECENT DELIVERIES:")
    print("-" * 60)
    if len(df) > 0:
        cols = ['display_tag', 'customer_name', 'total_amount', 'delivered_at']
        cols = [c for c in cols if c in df.columns]
        print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE")
    print("=" * 60)

    return True


if __name__ == "__main__":
    verify_archive()
