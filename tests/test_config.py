# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for configuration module."""

import os
from unittest.mock import patch

import pytest

from contractwire.config import AppSettings, settings


class TestAppSettings:
    """Tests for AppSettings class."""

    def test_singleton_pattern(self):
        """Test AppSettings maintains singleton instance."""
        assert AppSettings._instance is settings
        assert settings is not None

    def test_frozen_settings(self):
        """Test settings are frozen and cannot be modified."""
        with pytest.raises(Exception):  # ValidationError from Pydantic
            settings.STRICT_REGISTRY = True

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            config = AppSettings(_env_file=None)
        assert config.DEFAULT_TIMEOUT is None
        assert config.STRICT_REGISTRY is False
        assert config.USER_AGENT == "contractwire"


class TestEnvironmentVariableLoading:
    """Tests for environment variable loading."""

    def test_load_timeout(self):
        with patch.dict(
            os.environ, {"CONTRACTWIRE_DEFAULT_TIMEOUT": "2.5"}, clear=False
        ):
            config = AppSettings()
        assert config.DEFAULT_TIMEOUT == 2.5

    def test_load_strict_registry_case_insensitive(self):
        with patch.dict(
            os.environ, {"contractwire_strict_registry": "true"}, clear=False
        ):
            config = AppSettings()
        assert config.STRICT_REGISTRY is True

    def test_unprefixed_variables_ignored(self):
        with patch.dict(os.environ, {"USER_AGENT": "other"}, clear=False):
            config = AppSettings(_env_file=None)
        assert config.USER_AGENT != "other"
