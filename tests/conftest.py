"""Shared test fixtures."""

from __future__ import annotations

import pytest

BASE = "https://malshare.test"
API_KEY = "test-key"
API = f"{BASE}/api.php?api_key={API_KEY}&action="

MD5 = "44d88612fea8a8f36de82e1278abb02f"
SHA1 = "3395856ce81f2b7382dee72602f798b642f14140"
SHA256 = "275a021bbfb6489e54d471899f7db9d1663fc695ec2fe2a2c4538aabf651fd0f"


@pytest.fixture()
def sample_bytes() -> bytes:
    return b"MZ\x90\x00\x03\x00\x00\x00\x04\x00"


@pytest.fixture()
def search_payload() -> list[dict]:
    return [
        {
            "md5": MD5,
            "sha1": SHA1,
            "sha256": SHA256,
            "type": "PE32",
            "added": 1609459200,
            "source": "http://example.test/dropper.exe",
            "yarahits": "NULL",
            "parentfiles": ["aa" * 16],
            "subfiles": [],
        }
    ]
