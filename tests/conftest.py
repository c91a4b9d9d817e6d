"""Shared fixtures for Momentum tests."""

from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.momentum.const import (
    CONF_MAINTENANCE_HOUR,
    CONF_MAINTENANCE_MINUTE,
    CONF_REGENERATION_DAY,
    CONF_STATISTICS_WINDOW_DAYS,
    DEFAULT_MAINTENANCE_HOUR,
    DEFAULT_MAINTENANCE_MINUTE,
    DEFAULT_REGENERATION_DAY,
    DEFAULT_STATISTICS_WINDOW_DAYS,
    DOMAIN,
    MOMENTUM_TITLE,
)
from custom_components.momentum.store import MomentumStore
from tests.helpers import TODAY

# pylint: disable=invalid-name
pytest_plugins = "pytest_homeassistant_custom_component"
# pylint: enable=invalid-name


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations: Any) -> Any:
    """Enable custom integrations in tests."""
    # pylint: disable=unused-argument
    yield


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Return a mock config entry with default options."""
    return MockConfigEntry(
        domain=DOMAIN,
        title=MOMENTUM_TITLE,
        data={},
        options={
            CONF_MAINTENANCE_HOUR: DEFAULT_MAINTENANCE_HOUR,
            CONF_MAINTENANCE_MINUTE: DEFAULT_MAINTENANCE_MINUTE,
            CONF_REGENERATION_DAY: DEFAULT_REGENERATION_DAY,
            CONF_STATISTICS_WINDOW_DAYS: DEFAULT_STATISTICS_WINDOW_DAYS,
        },
        entry_id="test_entry_id",
        unique_id="test_unique_id",
    )


@pytest.fixture
async def store(hass: HomeAssistant) -> MomentumStore:
    """Return an initialized store backed by the mocked hass storage."""
    momentum_store = MomentumStore(hass)
    await momentum_store.async_initialize()
    return momentum_store


@pytest.fixture
def mock_coordinator(
    store: MomentumStore,  # pylint: disable=redefined-outer-name
) -> MagicMock:
    """Return a mock coordinator with a real store and a fixed clock."""
    mock = MagicMock()
    mock.store = store
    mock.today = MagicMock(return_value=TODAY)
    mock.regeneration_day = DEFAULT_REGENERATION_DAY
    mock.statistics_window_days = DEFAULT_STATISTICS_WINDOW_DAYS
    mock.maintenance_time = (DEFAULT_MAINTENANCE_HOUR, DEFAULT_MAINTENANCE_MINUTE)
    mock.config_entry.entry_id = "test_entry_id"
    return mock


@pytest.fixture
async def init_integration(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,  # pylint: disable=redefined-outer-name
) -> MockConfigEntry:
    """Set up the Momentum integration with an empty store and a fixed clock."""
    mock_config_entry.add_to_hass(hass)

    with patch(
        "custom_components.momentum.coordinator.dt_utils.dt_today_local",
        return_value=TODAY,
    ):
        assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
        await hass.async_block_till_done()

    return mock_config_entry

