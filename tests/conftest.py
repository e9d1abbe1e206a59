"""Shared fixtures for the test suite."""

import sys
from pathlib import Path

import pytest

# Allow running the tests from a checkout without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from coal_log.acquire import ImageHandle  # noqa: E402


@pytest.fixture
def image():
    return ImageHandle(data=b'\xff\xd8\xff\xe0fake-jpeg', source='page1.jpg', media_type='image/jpeg')
