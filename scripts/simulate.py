"""
Order Flow Simulation Script

Fires concurrent orders at a running server, then races status updates on
one order to show that each transition is applied once.
Run from project root (after scripts/seed_demo.py):

    python scripts/simulate.py --orders 30
"""

import argparse
import asyncio
import random
import time
from collections import Counter
from datetime import datetime
from typing import Any

import httpx

API_BASE_URL = "http://localhost:3000"
RESTAURANT_SLUG = "urban-diner"

FIRST_NAMES = ["John", "Jane", "Mike", "Sarah", "Tom", "Emma", "David", "Lisa"]
ORDER_TYPES = ["walk-in", "phone", "online", None]


async def load_menu(client: httpx.AsyncClient) -> tuple[str, list[dict[str, Any]]]:
    response = await client.get(f"{API_BASE_URL}/api/restaurants/{RESTAURANT_SLUG}")
    response.raise_for_status()
    restaurant_id = response.json()["restaurant"]["id"]

    response = await client.get(
        f"{API_BASE_URL}/api/restaurants/{restaurant_id}/menu",
        params={"available_only": "true"},
    )
    response.raise_for_status()
    items = [item for category in response.json()["menu"] for item in category["items"]]
    return restaurant_id, items


def generate_order_payload(items: list[dict[str, Any]]) -> dict[str, Any]:
    lines = []
    for item in random.sample(items, k=min(len(items), random.randint(1, 3))):
        lines.append({
            "id": item["id"],
            "quantity": random.randint(1, 3),
            # Forged price: the server must ignore it
            "price": 0.01,
        })
    return {
        "customer_name": random.choice(FIRST_NAMES),
        "phone_number": f"+1 555 {random.randint(100, 999)} {random.randint(1000, 9999)}",
        "order_type": random.choice(ORDER_TYPES),
        "items": lines,
    }


async def send_order(client: httpx.AsyncClient, restaurant_id: str, items, order_num: int) -> dict[str, Any]:
    start_time = time.time()
    try:
        response = await client.post(
            f"{API_BASE_URL}/api/restaurants/{restaurant_id}/orders",
            json=generate_order_payload(items),
            timeout=30.0,
        )
    except httpx.HTTPError as e:
        return {"order_num": order_num, "success": False, "error": str(e)[:100], "time": 0.0}

    elapsed = round(time.time() - start_time, 3)
    if response.status_code != 200:
        return {"order_num": order_num, "success": False, "error": response.text[:100], "time": elapsed}

    order = response.json()["order"]
    return {
        "order_num": order_num,
        "success": True,
        "order_id": order["id"],
        "order_number": order["order_number"],
        "total": float(order["total"]),
        "time": elapsed,
    }


async def race_status(client: httpx.AsyncClient, order_id: str, racers: int) -> Counter:
    """Send the same new -> preparing transition ``racers`` times at once."""
    responses = await asyncio.gather(*[
        client.put(f"{API_BASE_URL}/api/orders/{order_id}/status", json={"status": "preparing"})
        for _ in range(racers)
    ])
    return Counter(r.status_code for r in responses)


async def run_simulation(num_orders: int, racers: int) -> None:
    print("=" * 70)
    print("🔥 ORDER FLOW SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        restaurant_id, items = await load_menu(client)
        if not items:
            print("❌ No available menu items. Run scripts/seed_demo.py first.")
            return

        start_time = time.time()
        results = await asyncio.gather(*[
            send_order(client, restaurant_id, items, i + 1) for i in range(num_orders)
        ])
        total_time = round(time.time() - start_time, 2)

        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]

        print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
        print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
        print(f"⏱️  Total Time: {total_time}s")

        if successful:
            avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
            numbers = Counter(r["order_number"] for r in successful)
            repeats = sum(count - 1 for count in numbers.values() if count > 1)
            print(f"   Average Response: {avg_time}s")
            print(f"   💰 Total Revenue: ${sum(r['total'] for r in successful):.2f}")
            print(f"   Repeated order numbers: {repeats}")

            print(f"\n🏁 Racing {racers} identical status updates on {successful[0]['order_number']}...")
            codes = await race_status(client, successful[0]["order_id"], racers)
            print(f"   Responses by status code: {dict(codes)}")

        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("=" * 70)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Order Flow Simulation")
    parser.add_argument("--orders", type=int, default=30, help="Number of orders")
    parser.add_argument("--racers", type=int, default=5, help="Concurrent status updates")
    parser.add_argument("--url", default=API_BASE_URL, help="Server base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url
    asyncio.run(run_simulation(args.orders, args.racers))
