#!/usr/bin/env python3
"""Pair a WhatsApp device from the terminal.

Logs in, asks the API for a QR code and then polls the device status at a
fixed interval until it reports ``connected`` (or the timeout expires), the
same loop the dashboard runs while the QR is on screen.
"""
from __future__ import annotations

import argparse
import os
import sys
import time

import httpx

DEFAULT_POLL_INTERVAL_SECONDS = 10
DEFAULT_TIMEOUT_SECONDS = 300


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gera QR e acompanha o pareamento de um device.")
    parser.add_argument("--api-url", default=os.getenv("API_URL", "http://localhost:8000/api/v1"))
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--device-id", help="Device existente; se omitido, cria um novo")
    parser.add_argument("--device-name", default="terminal-device")
    parser.add_argument("--interval", type=int, default=DEFAULT_POLL_INTERVAL_SECONDS)
    parser.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT_SECONDS)
    return parser.parse_args()


def wait_until_connected(
    client: httpx.Client,
    device_id: str,
    *,
    interval: int,
    timeout: int,
    sleep=time.sleep,
    clock=time.monotonic,
) -> str:
    deadline = clock() + timeout
    status = "connecting"
    while clock() < deadline:
        response = client.get(f"/whatsapp/devices/{device_id}/status")
        response.raise_for_status()
        status = response.json().get("status", "error")
        print(f"status={status}")
        if status == "connected":
            return status
        if status == "error":
            return status
        sleep(interval)
    return status


def main() -> int:
    args = parse_args()

    with httpx.Client(base_url=args.api_url, timeout=30.0) as client:
        login = client.post("/auth/login", json={"email": args.email, "password": args.password})
        if login.status_code != 200:
            print(f"Login falhou: {login.status_code} {login.text}")
            return 1
        client.headers["Authorization"] = f"Bearer {login.json()['accessToken']}"

        device_id = args.device_id
        if not device_id:
            created = client.post("/whatsapp/devices", json={"deviceName": args.device_name})
            if created.status_code != 201:
                print(f"Falha ao criar device: {created.status_code} {created.text}")
                return 1
            device_id = created.json()["deviceId"]
            print(f"Device criado: {device_id}")

        qr = client.post(f"/whatsapp/devices/{device_id}/qr")
        if qr.status_code != 200:
            print(f"Falha ao gerar QR: {qr.status_code} {qr.text}")
            return 1
        body = qr.json()
        print("Escaneie o QR code no WhatsApp do celular:")
        print(body["qrCode"])
        print(f"Expira em: {body['expiresAt']}")

        try:
            status = wait_until_connected(client, device_id, interval=args.interval, timeout=args.timeout)
        except httpx.HTTPError as exc:
            print(f"Erro consultando status: {exc}")
            return 1

    if status != "connected":
        print(f"Device não conectou (status={status}).")
        return 1
    print("Device conectado.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
