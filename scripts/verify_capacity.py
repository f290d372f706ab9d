#!/usr/bin/env python3
"""
Fires concurrent job creations at a SINGLE-bay business on a live server and
checks exactly one is admitted (per-business creation lock).
"""
import asyncio
import os
import uuid

import httpx

API_URL = os.getenv("WASHQ_API_URL", "http://localhost:8000")
ADMIN_KEY = os.getenv("WASHQ_ADMIN_KEY", "dev-admin-key")

async def setup_business(client):
    business_id = f"verify-single-{uuid.uuid4().hex[:8]}"
    resp = await client.post("/api/v1/admin/businesses", headers={"X-Admin-Key": ADMIN_KEY}, json={
        "id": business_id,
        "name": "Verify Single Bay",
        "car_handling_capacity": "SINGLE",
    })
    resp.raise_for_status()
    headers = {"X-API-Key": resp.json()["api_key"]}

    customer = (await client.post("/api/v1/customers", headers=headers, json={"name": "Verifier", "phone": "5550100"})).json()
    car = (await client.post("/api/v1/cars", headers=headers, json={"customer_id": customer["id"], "car_number": "VER1FY"})).json()
    service = (await client.post("/api/v1/services", headers=headers, json={"name": "Rinse", "price": "5", "max_time": 15})).json()
    return headers, {"customer_id": customer["id"], "car_id": car["id"], "service_ids": [service["id"]]}

async def attempt_create(headers, body):
    async with httpx.AsyncClient(base_url=API_URL) as client:
        try:
            resp = await client.post("/api/v1/jobs", headers=headers, json=body, timeout=5.0)
            return resp.status_code, resp.json()
        except Exception as e:
            return None, str(e)

async def verify_capacity():
    async with httpx.AsyncClient(base_url=API_URL) as client:
        print("1. Onboarding a SINGLE capacity business...")
        headers, body = await setup_business(client)

    print("2. Sending 20 concurrent job creations...")
    results = await asyncio.gather(*[attempt_create(headers, body) for _ in range(20)])

    created = [r for code, r in results if code == 201]
    rejected = [r for code, r in results if code == 409]
    print(f"3. Results: {len(created)} created, {len(rejected)} rejected, {len(results) - len(created) - len(rejected)} other.")

    if len(created) == 1 and all(r["detail"] == "Another job is already in progress" for r in rejected):
        print(f"SUCCESS: Exactly one job admitted (token {created[0]['token_number']}).")
    else:
        print(f"FAILURE: {len(created)} jobs admitted for a single bay!")
        for job in created:
            print(f"   - {job['token_number']}")

if __name__ == "__main__":
    asyncio.run(verify_capacity())
