"""Shared test fixtures."""
import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timezone

from sources.inventory import InventorySource

NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
PROJECT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


@pytest.fixture
def now():
    """Fixed evaluation time used across tests."""
    return NOW


@pytest.fixture
def sample_inventory_path():
    return os.path.join(PROJECT_DIR, "config", "sample_inventory.yaml")


@pytest.fixture
def sample_rules_path():
    return os.path.join(PROJECT_DIR, "config", "alert_rules.yaml")


@pytest.fixture
def inventory():
    """Small fleet: two failing production nodes, one healthy staging node."""
    return InventorySource({
        "nodes": [
            {
                "certname": "web01.example.com",
                "environment": "production",
                "groups": ["webservers"],
                "facts": {"os": {"family": "RedHat", "release": {"major": "7"}}},
                "reports": [
                    {"timestamp": "2026-10-19T07:00:00Z", "status": "failed",
                     "metrics": {"resources": {"changed": 0, "failed": 2, "total": 10}}},
                    {"timestamp": "2026-10-19T07:30:00Z", "status": "failed",
                     "metrics": {"resources": {"changed": 0, "failed": 2, "total": 10}}},
                ],
            },
            {
                "certname": "web02.example.com",
                "environment": "production",
                "status": "failed",
                "last_report": "2026-10-19T07:45:00Z",
                "facts": {"os": {"family": "Debian", "release": {"major": "12"}}},
            },
            {
                "certname": "db01.example.com",
                "environment": "staging",
                "groups": ["databases"],
                "facts": {"os": {"family": "RedHat", "release": {"major": "8"}}},
                "reports": [
                    {"timestamp": "2026-10-19T07:50:00Z", "status": "unchanged",
                     "metrics": {"resources": {"changed": 0, "failed": 0, "total": 50}}},
                ],
            },
        ],
        "groups": {"webservers": ["web02.example.com"]},
    }, clock=lambda: NOW)
