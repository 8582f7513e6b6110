from __future__ import annotations

import json
from typing import Any

from fastapi.testclient import TestClient

from service.app import app


def main() -> None:
    client = TestClient(app)

    t0 = 1445234861
    outs: list[dict[str, Any]] = []
    for i, (v, r) in enumerate([(-74.178444, 0.003), (-74.178444, 0.003), (-74.177872, 0.003)]):
        payload = {"series_id": "demo", "value": v, "rate": r, "noise_sd": 0.01, "timestamp": t0 + i}
        resp = client.post("/estimate", json=payload)
        resp.raise_for_status()
        outs.append(resp.json())

    snap = client.get("/series/demo/snapshot")
    snap.raise_for_status()

    print(json.dumps({"estimates": outs, "snapshot": snap.json()}, indent=2))


if __name__ == "__main__":
    main()
