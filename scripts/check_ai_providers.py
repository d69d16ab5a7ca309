#!/usr/bin/env python3
"""
Check which AI backends this server can reach, using the same env vars the app reads.
Prints only non-sensitive status lines per provider:
 - MISSING (no key configured)
 - VALID / REACHABLE
 - INVALID (<status code>)
 - ERROR (<message>)

Exit code is 0 when at least one provider is usable.
"""
import sys

import httpx

from companion.config import settings


def check_ollama(client: httpx.Client) -> bool:
    url = f"{settings.ollama_base_url}/api/tags"
    try:
        r = client.get(url, timeout=settings.ai_probe_timeout)
    except httpx.HTTPError as e:
        print(f"ollama: ERROR ({settings.ollama_base_url}): {e}")
        return False
    if r.status_code != 200:
        print(f"ollama: INVALID: {r.status_code}")
        return False
    names = [m.get("name") for m in r.json().get("models", [])]
    note = "" if settings.ollama_model in names else f" (model {settings.ollama_model} not pulled)"
    print(f"ollama: REACHABLE at {settings.ollama_base_url}, {len(names)} model(s){note}")
    return settings.ollama_model in names


def check_google(client: httpx.Client) -> bool:
    if not settings.google_ai_api_key:
        print("google: MISSING")
        return False
    url = f"https://generativelanguage.googleapis.com/v1beta/models/{settings.google_ai_model}"
    try:
        r = client.get(url, params={"key": settings.google_ai_api_key})
    except httpx.HTTPError as e:
        print("google: ERROR:", str(e))
        return False
    if r.status_code == 200:
        print("google: VALID")
        return True
    print(f"google: INVALID: {r.status_code}")
    return False


def check_openai(client: httpx.Client) -> bool:
    if not settings.openai_api_key:
        print("openai: MISSING")
        return False
    headers = {"Authorization": f"Bearer {settings.openai_api_key}"}
    try:
        r = client.get("https://api.openai.com/v1/models", headers=headers)
    except httpx.HTTPError as e:
        print("openai: ERROR:", str(e))
        return False
    if r.status_code == 200:
        print("openai: VALID")
        return True
    print(f"openai: INVALID: {r.status_code}")
    return False


if __name__ == "__main__":
    with httpx.Client(timeout=10.0) as client:
        results = [check_ollama(client), check_google(client), check_openai(client)]
    print(f"default provider: {settings.default_provider}")
    sys.exit(0 if any(results) else 1)
