#!/usr/bin/env python3
"""Smoke test for a running webhook-trader instance.

Usage: smoke_webhook.py [BASE_URL] [WEBHOOK_SECRET] [ADMIN_TOKEN]
"""

import asyncio
import json
import sys

import httpx

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
SECRET = sys.argv[2] if len(sys.argv) > 2 else ""
ADMIN_TOKEN = sys.argv[3] if len(sys.argv) > 3 else ""


async def smoke():
    """Hit the read-only endpoints, then post one test signal."""
    async with httpx.AsyncClient(timeout=15) as client:
        print("Testing webhook-trader...\n")

        # 1. Health check
        print("1. Testing /api/health")
        try:
            response = await client.get(f"{BASE_URL}/api/health")
            print(f"   Status: {response.status_code}")
            print(f"   Response: {json.dumps(response.json(), indent=2)}\n")
        except Exception as e:
            print(f"   Error: {e}\n")

        # 2. Exchange connectivity
        print("2. Testing /api/status/exchange")
        try:
            response = await client.get(f"{BASE_URL}/api/status/exchange")
            data = response.json()
            print(f"   Connected: {data['connected']}")
            if not data["connected"]:
                print(f"   Error: {data['error']} (auth failure: {data['authFailure']})")
            print()
        except Exception as e:
            print(f"   Error: {e}\n")

        # 3. Engine state
        print("3. Testing /api/status/engine")
        try:
            response = await client.get(f"{BASE_URL}/api/status/engine")
            data = response.json()
            print(f"   Active: {data['isActive']}")
            print(f"   Open positions: {data['positionCount']}\n")
        except Exception as e:
            print(f"   Error: {e}\n")

        # 4. Admin settings
        if ADMIN_TOKEN:
            print("4. Testing /api/admin/settings")
            try:
                response = await client.get(
                    f"{BASE_URL}/api/admin/settings",
                    headers={"Authorization": f"Bearer {ADMIN_TOKEN}"},
                )
                print(f"   Status: {response.status_code}")
                data = response.json()
                print(f"   Allowed symbols: {', '.join(data['allowed_symbols'])}")
                print(f"   Max daily trades: {data['max_daily_trades']}\n")
            except Exception as e:
                print(f"   Error: {e}\n")

        # 5. Test signal (places a real minimum-size order)
        print("5. Testing /webhook/test")
        try:
            response = await client.post(
                f"{BASE_URL}/webhook/test",
                json={"amount": "0.0002"},
                headers={"X-Webhook-Secret": SECRET} if SECRET else {},
            )
            print(f"   Status: {response.status_code}")
            data = response.json()
            print(f"   Outcome: {data.get('status')} {data.get('reason', '')}\n")
        except Exception as e:
            print(f"   Error: {e}\n")


if __name__ == "__main__":
    asyncio.run(smoke())
