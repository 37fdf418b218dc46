# File: tests/unit/test_config.py
"""
Configuration Unit Tests

Tests for settings, secret providers and logging setup.
"""

import logging
import os
import unittest
from unittest.mock import patch
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent.parent))

from pydantic import ValidationError

from fleet_tracker.infrastructure.config import (
    FleetSettings, EnvironmentSecretProvider, StaticSecretProvider,
    SecretNotFoundError, setup_logging, LOG_FORMAT
)


class TestFleetSettings(unittest.TestCase):
    """Unit tests for FleetSettings"""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = FleetSettings()
        self.assertEqual(settings.repository_backend, "memory")
        self.assertEqual(settings.mongo_database, "fleet")
        self.assertEqual(settings.mongo_collection, "vehicles")
        self.assertEqual(settings.mongo_events_collection, "vehicle_events")
        self.assertEqual(settings.default_radius_km, 5.0)
        self.assertEqual(settings.event_channel, "fleet.vehicle-events")
        self.assertIsNone(settings.redis_url)

    def test_environment_overrides(self):
        environ = {
            "FLEET_REPOSITORY_BACKEND": "Mongo",
            "FLEET_MONGO_TIMEOUT_MS": "2500",
            "FLEET_DEFAULT_RADIUS_KM": "1.5",
            "FLEET_LOG_LEVEL": "debug",
            "FLEET_REDIS_URL": "",
        }
        with patch.dict(os.environ, environ, clear=True):
            settings = FleetSettings()
        self.assertEqual(settings.repository_backend, "mongo")
        self.assertEqual(settings.mongo_timeout_ms, 2500)
        self.assertEqual(settings.default_radius_km, 1.5)
        self.assertEqual(settings.log_level, "DEBUG")
        self.assertIsNone(settings.redis_url)

    def test_keyword_arguments_win_over_environment(self):
        environ = {"FLEET_MONGO_DATABASE": "from-env", "FLEET_SECRET_MONGO_URL": "mongodb://db:27017"}
        with patch.dict(os.environ, environ, clear=True):
            settings = FleetSettings(mongo_database="explicit")
            self.assertEqual(FleetSettings().mongo_database, "from-env")
        self.assertEqual(settings.mongo_database, "explicit")
        self.assertIsNone(settings.mongo_url)

    def test_invalid_values(self):
        for environ in (
            {"FLEET_REPOSITORY_BACKEND": "cosmos"},
            {"FLEET_DEFAULT_RADIUS_KM": "0"},
            {"FLEET_LOG_LEVEL": "LOUD"},
        ):
            with self.assertRaises(ValidationError, msg=f"Accepted {environ!r}"):
                with patch.dict(os.environ, environ, clear=True):
                    FleetSettings()


class TestSecretProviders(unittest.IsolatedAsyncioTestCase):
    """Unit tests for secret providers"""

    async def test_environment_secret(self):
        provider = EnvironmentSecretProvider({"FLEET_SECRET_MONGO_URL": "mongodb://db:27017"})
        self.assertEqual(provider.variable_name("mongo-url"), "FLEET_SECRET_MONGO_URL")
        self.assertEqual(await provider.get_secret("mongo-url"), "mongodb://db:27017")

    async def test_missing_secret(self):
        with self.assertRaises(SecretNotFoundError):
            await EnvironmentSecretProvider({}).get_secret("mongo-url")
        with self.assertRaises(SecretNotFoundError):
            await StaticSecretProvider({}).get_secret("mongo-url")

    async def test_static_secret(self):
        self.assertEqual(await StaticSecretProvider({"mongo-url": "x"}).get_secret("mongo-url"), "x")


class TestLoggingSetup(unittest.TestCase):
    """Unit tests for setup_logging"""

    def test_console_logging(self):
        with patch("logging.basicConfig") as basic_config:
            logger = setup_logging("warning")

        kwargs = basic_config.call_args.kwargs
        self.assertEqual(kwargs["level"], logging.WARNING)
        self.assertEqual(kwargs["format"], LOG_FORMAT)
        self.assertEqual(len(kwargs["handlers"]), 1)
        self.assertEqual(logger.name, "fleet_tracker")

    def test_file_logging(self):
        with patch("logging.basicConfig") as basic_config, \
             patch("logging.FileHandler") as file_handler:
            setup_logging("INFO", "fleet.log")

        file_handler.assert_called_once_with("fleet.log")
        self.assertEqual(len(basic_config.call_args.kwargs["handlers"]), 2)


if __name__ == '__main__':
    unittest.main()
