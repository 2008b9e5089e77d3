"""Tests for Config loading, expansion and validation"""

import os

import pytest
import yaml

from lifeline.core.config import Config
from lifeline.core.env import EnvManager
from lifeline.transport.errors import ConfigError


def write_config(temp_dir, data, name="host.yaml"):
    config_file = os.path.join(temp_dir, name)
    with open(config_file, "w") as f:
        yaml.dump(data, f)
    return config_file


class TestConfigIdentity:
    """Test host identity and options"""

    def test_identity_from_config(self, temp_dir, sample_config_data):
        config = Config(write_config(temp_dir, sample_config_data))
        identity = config.identity

        assert identity.vmhostname == "vm-0142"
        assert identity.ip == "10.20.0.14"
        assert identity.hostname == "build-01.example.com"
        assert identity.user == "admin"
        assert identity.port == 22
        assert identity.ssh_options == {
            "password": "test_password",
            "strict_host_key_checking": False,
            "port": 22,
        }

    def test_host_as_plain_string(self, temp_dir):
        config = Config(write_config(temp_dir, {"host": "build-01", "port": 2222}))

        assert config.identity.hostname == "build-01"
        assert config.identity.port == 2222
        assert config.identity.ssh_options["port"] == 2222
        assert config.identity.user == "root"

    def test_preference_and_options(self, temp_dir, sample_config_data):
        config = Config(write_config(temp_dir, sample_config_data))

        assert config.preference == ["ip", "hostname"]
        assert config.options == {"max_connection_tries": 4, "silent": True}

    def test_default_preference(self, temp_dir):
        config = Config(write_config(temp_dir, {"host": {"ip": "10.0.0.1"}}))

        assert config.preference == ["vmhostname", "ip", "hostname"]
        assert config.options == {}

    def test_comma_separated_preference(self, temp_dir):
        config = Config(write_config(temp_dir, {"host": "h1", "ssh_connection_preference": "ip, hostname"}))

        assert config.preference == ["ip", "hostname"]


class TestConfigExpansion:
    """Test ${VAR} expansion"""

    def test_expands_from_env_section(self, temp_dir):
        data = {
            "env": {"SSH_PASSWORD": "hunter2"},
            "host": {"hostname": "${LIFELINE_TEST_TARGET_HOST:-build-01}"},
            "ssh": {"password": "${SSH_PASSWORD}"},
        }
        config = Config(write_config(temp_dir, data))

        assert config.identity.hostname == "build-01"
        assert config.identity.ssh_options["password"] == "hunter2"

    def test_expands_from_env_files(self, temp_dir):
        env_file = os.path.join(temp_dir, ".env")
        with open(env_file, "w") as f:
            f.write("# credentials\nSSH_PASSWORD='from file'\n")
        config = Config(write_config(temp_dir, {"host": "h1", "ssh": {"password": "$SSH_PASSWORD"}}),
                        env_files=[env_file])

        assert config.identity.ssh_options["password"] == "from file"

    def test_required_variable_missing(self, temp_dir):
        data = {"host": "h1", "ssh": {"password": "${LIFELINE_TEST_UNSET_VAR:?set a password}"}}

        with pytest.raises(ConfigError, match="LIFELINE_TEST_UNSET_VAR"):
            Config(write_config(temp_dir, data))

    def test_expand_lists_and_non_strings(self):
        expanded = EnvManager.expand({"a": ["$X", 3, {"b": "${X}"}], "c": True}, {"X": "y"})

        assert expanded == {"a": ["y", 3, {"b": "y"}], "c": True}


class TestConfigErrors:
    def test_missing_file(self, temp_dir):
        with pytest.raises(ConfigError):
            Config(os.path.join(temp_dir, "nope.yaml"))

    def test_invalid_yaml(self, temp_dir):
        config_file = os.path.join(temp_dir, "bad.yaml")
        with open(config_file, "w") as f:
            f.write("host: [unclosed\n")

        with pytest.raises(ConfigError):
            Config(config_file)

    def test_non_mapping(self, temp_dir):
        config_file = os.path.join(temp_dir, "list.yaml")
        with open(config_file, "w") as f:
            f.write("- a\n- b\n")

        with pytest.raises(ConfigError):
            Config(config_file)


class TestConfigValidate:
    def test_valid(self, temp_dir, sample_config_data):
        assert Config(write_config(temp_dir, sample_config_data)).validate() is True

    def test_no_address(self, temp_dir):
        assert Config(write_config(temp_dir, {"host": {"hostname": None}})).validate() is False

    def test_bad_preference(self, temp_dir):
        data = {"host": "h1", "ssh_connection_preference": ["ip", 3]}

        assert Config(write_config(temp_dir, data)).validate() is False

    def test_bad_max_connection_tries(self, temp_dir):
        data = {"host": "h1", "options": {"max_connection_tries": 0}}

        assert Config(write_config(temp_dir, data)).validate() is False
