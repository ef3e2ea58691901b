"""Shared fixtures: a small zip artifact and a service loaded from it."""

import asyncio

import pytest

from zipfill.lookup.service import LookupService

SAMPLE_DATA = {
    "12345": [
        {"city": "Schenectady", "state": "NY", "county": "Schenectady"},
        {"city": "Rotterdam", "state": "NY", "county": "Schenectady"},
    ],
    "90210": {"city": "Beverly Hills", "state": "CA", "county": "Los Angeles"},
    "00501": [{"city": "Holtsville", "state": "NY", "county": "Suffolk"}],
    "10001": [{"city": "New York", "state": "NY", "county": "New York"}],
    "59801": [
        {"city": "Missoula", "state": "MT", "county": "Missoula"},
        {"city": "Missoula", "state": "MT", "county": "Missoula County"},
    ],
}


@pytest.fixture
def sample_data() -> dict:
    return SAMPLE_DATA


@pytest.fixture
def service() -> LookupService:
    svc = LookupService(default_source=SAMPLE_DATA)
    asyncio.run(svc.load())
    return svc
