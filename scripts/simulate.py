"""
Delivery Rush Simulation Script

Fires a burst of concurrent delivery orders at the API, then walks every
created order through its lifecycle (pending -> in preparation -> ready ->
delivered) so the archive worker gets exercised too.
Run from project root: python scripts/simulate.py
"""

import asyncio
import sys
import random
import time
import argparse
from datetime import datetime, timedelta
from typing import Any, Optional

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_ORDERS = 50

LIFECYCLE = ["in_preparation", "ready", "delivered"]
PLATFORMS = ["just-eat", "glovo", "deliveroo", "uber-eats", "phone", "takeaway"]
REFERENCE_PREFIXES = {
    "just-eat": "JE",
    "glovo": "GL",
    "deliveroo": "DR",
    "uber-eats": "UE",
    "phone": "",
    "takeaway": "",
}

# Sample data for random orders
FIRST_NAMES = ["Giulia", "Marco", "Luca", "Sara", "Paolo", "Elena", "Davide", "Chiara", "Matteo", "Anna"]
LAST_NAMES = ["Rossi", "Bianchi", "Romano", "Colombo", "Ricci", "Marino", "Greco", "Bruno", "Gallo", "Conti"]
STREETS = ["Via Roma", "Corso Garibaldi", "Via Dante", "Piazza Duomo", "Via Manzoni", "Viale Europa"]
NOTES = [None, "Citofono rotto, chiamare", "Senza cipolla", "Lasciare alla portineria", "Ben cotta"]


def generate_random_customer() -> dict[str, str]:
    """Generate random customer info."""
    first = random.choice(FIRST_NAMES)
    last = random.choice(LAST_NAMES)
    return {
        "name": f"{first} {last}",
        "phone": f"3{random.randint(10, 99)} {random.randint(1000000, 9999999)}",
        "address": f"{random.choice(STREETS)} {random.randint(1, 120)}",
    }


def generate_requested_time() -> Optional[str]:
    """ASAP (None) or a slot somewhere in the next hour and a half."""
    if random.random() < 0.25:
        return None
    slot = datetime.now() + timedelta(minutes=random.randint(-10, 90))
    return slot.strftime("%H:%M")


def generate_order_payload(menu: list[dict[str, Any]]) -> dict[str, Any]:
    """Generate payload for POST /api/delivery/orders."""
    customer = generate_random_customer()
    platform = random.choice(PLATFORMS)
    prefix = REFERENCE_PREFIXES[platform]

    items = [
        {"menu_item_id": item["id"], "quantity": random.randint(1, 3)}
        for item in random.sample(menu, k=min(len(menu), random.randint(1, 4)))
    ]

    return {
        "platform": platform,
        "external_reference": f"{prefix}{random.randint(10000, 99999)}" if prefix else None,
        "customer_name": customer["name"],
        "customer_phone": customer["phone"],
        "customer_address": customer["address"] if platform != "takeaway" else None,
        "requested_time": generate_requested_time(),
        "notes": random.choice(NOTES),
        "items": items,
    }


async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    menu: list[dict[str, Any]]
) -> dict[str, Any]:
    """Create one order."""
    payload = generate_order_payload(menu)
    start_time = time.time()

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/delivery/orders",
            json=payload,
            timeout=30.0
        )
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 200:
            order = response.json()["order"]
            return {
                "order_num": order_num,
                "success": True,
                "order_id": order["id"],
                "display_tag": order["display_tag"],
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": elapsed,
        }


async def walk_lifecycle(client: httpx.AsyncClient, order_id: str) -> dict[str, Any]:
    """Advance an order step by step until it is delivered."""
    for status in LIFECYCLE:
        await asyncio.sleep(random.uniform(0.05, 0.3))
        try:
            response = await client.post(
                f"{API_BASE_URL}/api/delivery/orders/{order_id}/advance",
                json={"status": status},
                timeout=30.0
            )
        except httpx.HTTPError as e:
            return {"order_id": order_id, "success": False, "stopped_at": status, "error": str(e)[:100]}

        if response.status_code != 200:
            return {
                "order_id": order_id,
                "success": False,
                "stopped_at": status,
                "error": response.text[:100],
            }
    return {"order_id": order_id, "success": True}


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    num_orders: int = TOTAL_ORDERS,
    deliver: bool = True
) -> dict[str, Any]:
    """
    Run the delivery rush.

    Args:
        num_orders: Number of orders to create
        deliver: Walk every created order through to delivered
    """
    print("=" * 70)
    print("🛵 DELIVERY RUSH SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        menu = (await client.get(f"{API_BASE_URL}/api/menu")).json()
        if not menu:
            print("\n❌ Menu is empty, nothing to order.")
            return {"total": num_orders, "successful": 0, "failed": num_orders}

        print("\n🚀 Firing orders...\n")
        results = await asyncio.gather(*[send_order(client, i + 1, menu) for i in range(num_orders)])

        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]

        lifecycle_results = []
        if deliver and successful:
            print("🍕 Walking orders through the kitchen...\n")
            lifecycle_results = await asyncio.gather(
                *[walk_lifecycle(client, r["order_id"]) for r in successful]
            )

        board = (await client.get(f"{API_BASE_URL}/api/delivery/orders")).json()

    total_time = round(time.time() - start_time, 2)
    delivered = [r for r in lifecycle_results if r["success"]]

    # Print results
    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)

    print(f"\n✅ Created Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    if deliver:
        print(f"📦 Delivered: {len(delivered)}/{len(successful)}")
    print(f"🗂️  Still on the board: {board.get('total', 0)}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"\n📈 Performance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")

    if failed:
        print(f"\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    stuck = [r for r in lifecycle_results if not r["success"]]
    if stuck:
        print(f"\n⚠️  Orders stuck in the lifecycle (showing first 5):")
        for s in stuck[:5]:
            print(f"   {s['order_id']} at {s['stopped_at']}: {s.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("🔍 VERIFICATION STEPS")
    print("=" * 70)
    print("1. Check the Celery terminal - archive tasks should complete")
    print("2. Run: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "delivered": len(delivered),
        "total_time": total_time,
    }


async def preflight_checks() -> bool:
    """Check the API is up before the rush."""
    print("\n" + "=" * 70)
    print("🧪 PRE-FLIGHT CHECKS")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        print("\n1️⃣ Health Check...")
        try:
            response = await client.get(f"{API_BASE_URL}/health")
        except httpx.HTTPError as e:
            print(f"   ❌ API unreachable: {e}")
            return False
        data = response.json()
        print(f"   ✅ Status: {data.get('status')}")
        print(f"   Order Store: {data.get('order_store')}")
        print(f"   Redis: {data.get('redis')}")

        print("\n2️⃣ Menu...")
        menu = (await client.get(f"{API_BASE_URL}/api/menu")).json()
        print(f"   ✅ {len(menu)} item(s)")

        print("\n3️⃣ Single Order...")
        response = await client.post(
            f"{API_BASE_URL}/api/delivery/orders",
            json=generate_order_payload(menu)
        )
        if response.status_code == 200:
            order = response.json()["order"]
            print(f"   ✅ {order['display_tag']} created ({order['id']})")
        else:
            print(f"   ⚠️ Response: {response.text[:100]}")

    print("\n" + "=" * 70)
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Delivery Rush Simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--no-deliver", action="store_true", help="Create orders only")
    parser.add_argument("--skip-checks", action="store_true", help="Skip pre-flight checks")
    args = parser.parse_args()

    if not args.skip_checks:
        if not asyncio.run(preflight_checks()):
            print("\n❌ Pre-flight checks failed. Is the API running?")
            sys.exit(1)
        print("\n✅ Pre-flight checks passed!")

    asyncio.run(run_simulation(num_orders=args.orders, deliver=not args.no_deliver))
