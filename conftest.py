"""Root conftest: loads .env.test before any module imports.

Settings are instantiated at import time, so the required keys must be in the
environment before ``marketplace_chat.config`` is first imported.
"""
from __future__ import annotations

import os
from pathlib import Path

_REQUIRED_DEFAULTS = {
    "POSTGRES_USER": "chat",
    "POSTGRES_PASSWORD": "chat",
    "POSTGRES_DB": "marketplace_chat_test",
    "JWT_SECRET": "test-secret-key-for-marketplace-chat-tests",
}

_env_test = Path(__file__).resolve().parent / ".env.test"
if _env_test.exists():
    for line in _env_test.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        os.environ.setdefault(key.strip(), value.strip())

for _key, _value in _REQUIRED_DEFAULTS.items():
    os.environ.setdefault(_key, _value)
