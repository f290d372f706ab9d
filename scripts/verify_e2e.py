#!/usr/bin/env python3
import asyncio
import os
import uuid

import httpx

API_URL = os.getenv("WASHQ_API_URL", "http://localhost:8000")
ADMIN_KEY = os.getenv("WASHQ_ADMIN_KEY", "dev-admin-key")

FLOW = ["IN_PROGRESS", "WASHING", "DRYING", "COMPLETED", "DELIVERED"]

async def verify_e2e():
    async with httpx.AsyncClient(base_url=API_URL, timeout=10.0) as client:
        business_id = f"verify-e2e-{uuid.uuid4().hex[:8]}"
        print(f"1. Onboarding {business_id} (MULTIPLE, 2 bays)...")
        resp = await client.post("/api/v1/admin/businesses", headers={"X-Admin-Key": ADMIN_KEY}, json={
            "id": business_id,
            "name": "Verify E2E",
            "car_handling_capacity": "MULTIPLE",
            "max_concurrent_jobs": 2,
        })
        resp.raise_for_status()
        headers = {"X-API-Key": resp.json()["api_key"]}

        customer = (await client.post("/api/v1/customers", headers=headers, json={"name": "E2E", "phone": "5550111"})).json()
        car = (await client.post("/api/v1/cars", headers=headers, json={"customer_id": customer["id"], "car_number": "E2E001"})).json()
        wash = (await client.post("/api/v1/services", headers=headers, json={"name": "Wash", "price": "10", "max_time": 20})).json()
        dry = (await client.post("/api/v1/services", headers=headers, json={"name": "Dry", "price": "4", "max_time": 35})).json()
        body = {"customer_id": customer["id"], "car_id": car["id"], "service_ids": [wash["id"], dry["id"]]}

        print("2. Creating jobs until the shop is full...")
        jobs = []
        for _ in range(3):
            resp = await client.post("/api/v1/jobs", headers=headers, json=body)
            if resp.status_code == 201:
                jobs.append(resp.json())
                print(f"   Created {jobs[-1]['token_number']} ETA {jobs[-1]['estimated_delivery']} total {jobs[-1]['total_price']}")
            else:
                print(f"   Rejected ({resp.status_code}): {resp.json()['detail']}")

        if len(jobs) != 2:
            print(f"FAILURE: expected 2 admitted jobs, got {len(jobs)}")
            return

        print("3. Advancing the first job through the wash flow...")
        job_id = jobs[0]["id"]
        for expected in FLOW:
            resp = await client.post(f"/api/v1/jobs/{job_id}/advance", headers=headers)
            resp.raise_for_status()
            status = resp.json()["status"]
            print(f"   -> {status}")
            if status != expected:
                print(f"FAILURE: expected {expected}, got {status}")
                return

        if not resp.json()["actual_delivery"]:
            print("FAILURE: delivered job has no actual_delivery")
            return

        print("4. Bay freed, creating one more job...")
        resp = await client.post("/api/v1/jobs", headers=headers, json=body)
        if resp.status_code == 201:
            print(f"SUCCESS: {resp.json()['token_number']} admitted after delivery.")
        else:
            print(f"FAILURE: {resp.status_code} {resp.text}")

if __name__ == "__main__":
    asyncio.run(verify_e2e())
