import dataclasses
import json
import os
from pathlib import Path
from types import MappingProxyType
from unittest.mock import patch

import pytest
import yaml

from config.config import (
    BrokerConfig,
    ProducerSettings,
    RunConfig,
    _cli_main,
    _deep_merge,
    _expand_env_vars,
    get_config_value,
    load_config,
    load_yaml,
)
from core.errors import ConfigurationError, DuplicateTopicError, FormatError
from topic_mirror.offsets import OFFSET_BEGINNING, OFFSET_END, TopicOffsetPolicy


# =========================================================================
# load_yaml
# =========================================================================


class TestLoadYaml:
    def test_returns_empty_dict_for_nonexistent_file(self):
        result = load_yaml(Path("/nonexistent/path/config.yaml"))
        assert result == {}

    def test_loads_yaml_file(self, tmp_path):
        config_file = tmp_path / "test.yaml"
        config_file.write_text("key: value\nnested:\n  a: 1\n")
        result = load_yaml(config_file)
        assert result == {"key": "value", "nested": {"a": 1}}

    def test_returns_empty_dict_for_empty_file(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        result = load_yaml(config_file)
        assert result == {}


# =========================================================================
# get_config_value
# =========================================================================


class TestGetConfigValue:
    def test_prefers_env_var_over_yaml(self):
        with patch.dict(os.environ, {"MY_VAR": "from_env"}):
            result = get_config_value("MY_VAR", "from_yaml", "default")
            assert result == "from_env"

    def test_falls_back_to_yaml_value(self):
        with patch.dict(os.environ, {}, clear=True):
            result = get_config_value("MY_VAR", "from_yaml", "default")
            assert result == "from_yaml"

    def test_falls_back_to_default(self):
        with patch.dict(os.environ, {}, clear=True):
            result = get_config_value("MY_VAR", "", "default")
            assert result == "default"

    def test_returns_none_when_all_empty(self):
        with patch.dict(os.environ, {}, clear=True):
            result = get_config_value("MY_VAR", None)
            assert result is None

    def test_keeps_falsy_yaml_values(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_config_value("MY_VAR", 0, 30) == 0
            assert get_config_value("MY_VAR", False, True) is False

    def test_env_var_empty_string_uses_yaml(self):
        # An empty environment variable counts as unset
        with patch.dict(os.environ, {"MY_VAR": ""}):
            result = get_config_value("MY_VAR", "from_yaml")
            assert result == "from_yaml"


# =========================================================================
# _expand_env_vars
# =========================================================================


class TestExpandEnvVars:
    def test_expands_simple_variable(self):
        with patch.dict(os.environ, {"MY_VAR": "hello"}):
            result = _expand_env_vars("prefix-${MY_VAR}-suffix")
            assert result == "prefix-hello-suffix"

    def test_expands_variable_with_default(self):
        with patch.dict(os.environ, {}, clear=True):
            result = _expand_env_vars("${MISSING_VAR:-fallback}")
            assert result == "fallback"

    def test_uses_env_value_over_default(self):
        with patch.dict(os.environ, {"MY_VAR": "real_value"}):
            result = _expand_env_vars("${MY_VAR:-fallback}")
            assert result == "real_value"

    def test_expands_in_dict(self):
        with patch.dict(os.environ, {"SINK_HOST": "sink"}):
            result = _expand_env_vars({"bootstrap_servers": "${SINK_HOST}:9092", "request_timeout_ms": 40000})
            assert result == {"bootstrap_servers": "sink:9092", "request_timeout_ms": 40000}

    def test_expands_in_list(self):
        with patch.dict(os.environ, {"ITEM": "expanded"}):
            result = _expand_env_vars(["${ITEM}", "static"])
            assert result == ["expanded", "static"]

    def test_returns_non_string_unchanged(self):
        assert _expand_env_vars(42) == 42
        assert _expand_env_vars(True) is True
        assert _expand_env_vars(None) is None

    def test_nested_dict_expansion(self):
        with patch.dict(os.environ, {"VAL": "x"}):
            data = {"a": {"b": {"c": "${VAL}"}}}
            result = _expand_env_vars(data)
            assert result == {"a": {"b": {"c": "x"}}}

    def test_keeps_literal_when_no_env_var(self):
        with patch.dict(os.environ, {}, clear=True):
            # Without default, the ${VAR} stays as-is
            result = _expand_env_vars("${UNDEFINED_VAR}")
            assert result == "${UNDEFINED_VAR}"

    def test_empty_default_value(self):
        with patch.dict(os.environ, {}, clear=True):
            result = _expand_env_vars("${MISSING:-}")
            assert result == ""


# =========================================================================
# _deep_merge
# =========================================================================


class TestDeepMerge:
    def test_merges_flat_dicts(self):
        base = {"a": 1, "b": 2}
        overlay = {"b": 3, "c": 4}
        result = _deep_merge(base, overlay)
        assert result == {"a": 1, "b": 3, "c": 4}

    def test_merges_nested_dicts(self):
        base = {"x": {"a": 1, "b": 2}}
        overlay = {"x": {"b": 3, "c": 4}}
        result = _deep_merge(base, overlay)
        assert result == {"x": {"a": 1, "b": 3, "c": 4}}

    def test_overlay_replaces_non_dict_with_non_dict(self):
        base = {"a": 1}
        overlay = {"a": "new"}
        result = _deep_merge(base, overlay)
        assert result == {"a": "new"}

    def test_overlay_replaces_dict_with_non_dict(self):
        base = {"a": {"nested": True}}
        overlay = {"a": "flat"}
        result = _deep_merge(base, overlay)
        assert result == {"a": "flat"}

    def test_does_not_modify_original(self):
        base = {"a": 1}
        overlay = {"b": 2}
        _deep_merge(base, overlay)
        assert base == {"a": 1}



# =========================================================================
# BrokerConfig
# =========================================================================


class TestBrokerConfig:
    def test_default_values(self):
        config = BrokerConfig()
        assert config.bootstrap_servers == ""
        assert config.security_protocol == "PLAINTEXT"
        assert config.request_timeout_ms == 40000
        assert config.metadata_max_age_ms == 300000
        assert not config.uses_sasl
        assert not config.uses_ssl

    def test_password_not_in_repr(self):
        config = BrokerConfig(sasl_plain_password="hunter2")
        assert "hunter2" not in repr(config)

    def test_protocol_flags(self):
        assert BrokerConfig(security_protocol="SASL_SSL").uses_sasl
        assert BrokerConfig(security_protocol="SASL_SSL").uses_ssl
        assert BrokerConfig(security_protocol="SSL").uses_ssl
        assert not BrokerConfig(security_protocol="SASL_PLAINTEXT").uses_ssl

    def test_from_dict(self):
        config = BrokerConfig.from_dict(
            {
                "bootstrap_servers": "src:9092",
                "security_protocol": "sasl_ssl",
                "sasl_mechanism": "scram-sha-512",
                "sasl_plain_username": "mirror",
                "sasl_plain_password": "secret",
                "request_timeout_ms": "15000",
            },
            "SOURCE",
        )
        assert config.bootstrap_servers == "src:9092"
        assert config.security_protocol == "SASL_SSL"
        assert config.sasl_mechanism == "SCRAM-SHA-512"
        assert config.request_timeout_ms == 15000

    def test_env_vars_win_over_yaml(self):
        env = {"SINK_BOOTSTRAP_SERVERS": "env-sink:9092", "SINK_SSL_INSECURE": "true"}
        with patch.dict(os.environ, env):
            config = BrokerConfig.from_dict({"bootstrap_servers": "yaml-sink:9092"}, "SINK")
        assert config.bootstrap_servers == "env-sink:9092"
        assert config.ssl_insecure is True

    def test_rejects_bad_boolean(self):
        with pytest.raises(ConfigurationError, match="sink.ssl_insecure"):
            BrokerConfig.from_dict({"ssl_insecure": "maybe"}, "SINK")

    def test_rejects_bad_integer(self):
        with pytest.raises(ConfigurationError, match="source.request_timeout_ms"):
            BrokerConfig.from_dict({"request_timeout_ms": "soon"}, "SOURCE")

    def test_validate_requires_bootstrap_servers(self):
        with pytest.raises(ConfigurationError, match="source: bootstrap_servers is required"):
            BrokerConfig().validate("source")

    def test_validate_rejects_unknown_protocol(self):
        with pytest.raises(ConfigurationError, match="security_protocol"):
            BrokerConfig(bootstrap_servers="b:9092", security_protocol="TLS").validate("sink")

    def test_validate_sasl_requires_credentials(self):
        config = BrokerConfig(bootstrap_servers="b:9092", security_protocol="SASL_SSL")
        with pytest.raises(ConfigurationError, match="sasl_plain_username"):
            config.validate("sink")

    def test_validate_gssapi_without_credentials(self):
        config = BrokerConfig(
            bootstrap_servers="b:9092",
            security_protocol="SASL_PLAINTEXT",
            sasl_mechanism="GSSAPI",
        )
        config.validate("sink")

    def test_validate_rejects_unknown_mechanism(self):
        config = BrokerConfig(
            bootstrap_servers="b:9092",
            security_protocol="SASL_SSL",
            sasl_mechanism="OAUTHBEARER",
        )
        with pytest.raises(ConfigurationError, match="sasl_mechanism"):
            config.validate("sink")

    def test_validate_rejects_cafile_and_cadata(self):
        config = BrokerConfig(
            bootstrap_servers="b:9092",
            security_protocol="SSL",
            ssl_cafile="/ca.pem",
            ssl_cadata="-----BEGIN CERTIFICATE-----",
        )
        with pytest.raises(ConfigurationError, match="only one of ssl_cafile and ssl_cadata"):
            config.validate("source")


# =========================================================================
# ProducerSettings
# =========================================================================


class TestProducerSettings:
    def test_default_values(self):
        settings = ProducerSettings()
        assert settings.acks == "all"
        assert settings.linger_ms == 5
        assert settings.compression_type is None
        assert settings.max_batch_size == 16384

    def test_from_dict_treats_none_compression_as_unset(self):
        settings = ProducerSettings.from_dict({"compression_type": "none", "linger_ms": "20"})
        assert settings.compression_type is None
        assert settings.linger_ms == 20

    def test_validate_rejects_unknown_acks(self):
        with pytest.raises(ConfigurationError, match="acks"):
            ProducerSettings(acks="some").validate()

    def test_validate_rejects_unknown_compression(self):
        with pytest.raises(ConfigurationError, match="compression_type"):
            ProducerSettings(compression_type="brotli").validate()

    def test_validate_accepts_numeric_acks(self):
        ProducerSettings(acks=1).validate()
        ProducerSettings(acks="0").validate()


# =========================================================================
# RunConfig
# =========================================================================


def _run_config(**kwargs):
    values = {
        "topics": ("orders",),
        "policies": {"orders": TopicOffsetPolicy()},
        "source": BrokerConfig(bootstrap_servers="src:9092"),
        "sink": BrokerConfig(bootstrap_servers="sink:9092"),
    }
    values.update(kwargs)
    return RunConfig(**values)


class TestRunConfig:
    def test_default_values(self):
        config = _run_config()
        assert config.timeout_seconds == 30.0
        assert config.default_offset == OFFSET_END
        assert config.replication_factor == -1
        assert config.auto_offset_reset == "earliest"
        assert config.wait_for_delivery is False
        assert config.client_id.startswith("topic-mirror-")

    def test_policies_are_read_only(self):
        config = _run_config()
        assert isinstance(config.policies, MappingProxyType)
        with pytest.raises(TypeError):
            config.policies["payments"] = TopicOffsetPolicy()

    def test_frozen(self):
        config = _run_config()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.timeout_seconds = 1

    def test_validate_passes(self):
        _run_config().validate()

    def test_validate_requires_topics(self):
        with pytest.raises(ConfigurationError, match="No topics"):
            _run_config(topics=(), policies={}).validate()

    @pytest.mark.parametrize("replication_factor", [0, -2])
    def test_validate_rejects_replication_factor(self, replication_factor):
        with pytest.raises(ConfigurationError, match="replication_factor"):
            _run_config(replication_factor=replication_factor).validate()

    def test_validate_rejects_timeout(self):
        with pytest.raises(ConfigurationError, match="timeout_seconds"):
            _run_config(timeout_seconds=0).validate()

    def test_validate_rejects_auto_offset_reset(self):
        with pytest.raises(ConfigurationError, match="auto_offset_reset"):
            _run_config(auto_offset_reset="smallest").validate()

    def test_validate_checks_brokers(self):
        with pytest.raises(ConfigurationError, match="sink: bootstrap_servers"):
            _run_config(sink=BrokerConfig()).validate()


# =========================================================================
# load_config
# =========================================================================


def _mirror_section(**extra):
    section = {
        "topics": ["orders"],
        "source": {"bootstrap_servers": "src:9092"},
        "sink": {"bootstrap_servers": "sink:9092"},
    }
    section.update(extra)
    return section


class TestLoadConfig:
    @pytest.fixture(autouse=True)
    def no_default_config_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr("config.config.DEFAULT_CONFIG_FILE", tmp_path / "absent.yaml")

    def _write_config(self, tmp_path, data):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump(data))
        return config_file

    def test_raises_for_missing_file(self):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(Path("/nonexistent/config.yaml"))

    def test_raises_for_missing_mirror_section(self, tmp_path):
        config_file = self._write_config(tmp_path, {"not_mirror": {}})
        with pytest.raises(ConfigurationError, match="missing 'mirror:'"):
            load_config(config_file)

    def test_loads_minimal_config(self, tmp_path):
        config_file = self._write_config(tmp_path, {"mirror": _mirror_section()})
        config = load_config(config_file)
        assert isinstance(config, RunConfig)
        assert config.topics == ("orders",)
        assert config.policies["orders"].is_default
        assert config.source.bootstrap_servers == "src:9092"
        assert config.sink.bootstrap_servers == "sink:9092"

    def test_parses_topic_specs_from_yaml(self, tmp_path):
        section = _mirror_section(topics=["orders@earliest", "payments@0:100,1:250", "audit"])
        config = load_config(self._write_config(tmp_path, {"mirror": section}))

        assert config.topics == ("orders", "payments", "audit")
        assert config.policies["orders"].global_offset == OFFSET_BEGINNING
        assert dict(config.policies["payments"].per_partition_offset) == {0: 100, 1: 250}

    def test_cli_topic_specs_take_precedence(self, tmp_path):
        config_file = self._write_config(tmp_path, {"mirror": _mirror_section()})

        config = load_config(config_file, topic_specs=["payments@5"])

        assert config.topics == ("payments",)
        assert config.policies["payments"].global_offset == 5

    def test_topics_from_environment(self, tmp_path):
        config_file = self._write_config(tmp_path, {"mirror": _mirror_section()})

        with patch.dict(os.environ, {"MIRROR_TOPICS": "a@latest  b@0:1,2:3"}):
            config = load_config(config_file)

        assert config.topics == ("a", "b")
        assert config.policies["a"].global_offset == OFFSET_END

    def test_environment_only(self):
        env = {
            "MIRROR_TOPICS": "orders",
            "SOURCE_BOOTSTRAP_SERVERS": "src:9092",
            "SINK_BOOTSTRAP_SERVERS": "sink:9092",
            "MIRROR_CLIENT_ID": "mirror-ci",
            "MIRROR_TIMEOUT_SECONDS": "12.5",
        }
        with patch.dict(os.environ, env):
            config = load_config()

        assert config.topics == ("orders",)
        assert config.client_id == "mirror-ci"
        assert config.timeout_seconds == 12.5

    def test_applies_overrides(self, tmp_path):
        config_file = self._write_config(tmp_path, {"mirror": _mirror_section()})

        config = load_config(
            config_file,
            overrides={"timeout_seconds": 5, "sink": {"security_protocol": "SSL"}},
        )

        assert config.timeout_seconds == 5
        assert config.sink.security_protocol == "SSL"
        assert config.sink.bootstrap_servers == "sink:9092"

    def test_overrides_take_precedence_over_environment(self, tmp_path):
        config_file = self._write_config(tmp_path, {"mirror": _mirror_section()})
        env = {"MIRROR_TIMEOUT_SECONDS": "30", "MIRROR_CLIENT_ID": "env-id"}

        with patch.dict(os.environ, env):
            config = load_config(
                config_file, overrides={"timeout_seconds": 5.0, "client_id": "cli-id"}
            )

        assert (config.timeout_seconds, config.client_id) == (5.0, "cli-id")

    def test_environment_used_without_override(self, tmp_path):
        config_file = self._write_config(tmp_path, {"mirror": _mirror_section(timeout_seconds=10)})

        with patch.dict(os.environ, {"MIRROR_TIMEOUT_SECONDS": "30"}):
            config = load_config(config_file, overrides={"client_id": "cli-id"})

        assert config.timeout_seconds == 30.0

    def test_default_offset_keyword(self, tmp_path):
        section = _mirror_section(default_offset="earliest")
        config = load_config(self._write_config(tmp_path, {"mirror": section}))
        assert config.default_offset == OFFSET_BEGINNING

    def test_invalid_default_offset(self, tmp_path):
        section = _mirror_section(default_offset="soonest")
        with pytest.raises(FormatError):
            load_config(self._write_config(tmp_path, {"mirror": section}))

    def test_duplicate_topics(self, tmp_path):
        section = _mirror_section(topics=["orders", "orders@earliest"])
        with pytest.raises(DuplicateTopicError):
            load_config(self._write_config(tmp_path, {"mirror": section}))

    def test_no_topics(self, tmp_path):
        section = _mirror_section(topics=[])
        with pytest.raises(ConfigurationError, match="No topics"):
            load_config(self._write_config(tmp_path, {"mirror": section}))

    def test_invalid_number(self, tmp_path):
        section = _mirror_section(fetch_timeout_ms="fast")
        with pytest.raises(ConfigurationError, match="fetch_timeout_ms"):
            load_config(self._write_config(tmp_path, {"mirror": section}))

    def test_validation_runs(self, tmp_path):
        section = _mirror_section(sink={})
        with pytest.raises(ConfigurationError, match="sink: bootstrap_servers is required"):
            load_config(self._write_config(tmp_path, {"mirror": section}))

    def test_expands_env_vars_in_yaml(self, tmp_path):
        section = _mirror_section(source={"bootstrap_servers": "${SRC_HOST:-localhost}:9092"})
        config_file = self._write_config(tmp_path, {"mirror": section})

        with patch.dict(os.environ, {"SRC_HOST": "kafka-a"}):
            config = load_config(config_file)

        assert config.source.bootstrap_servers == "kafka-a:9092"

    def test_producer_settings(self, tmp_path):
        section = _mirror_section(producer={"acks": 1, "compression_type": "lz4"})
        config = load_config(self._write_config(tmp_path, {"mirror": section}))
        assert config.producer.acks == 1
        assert config.producer.compression_type == "lz4"


# =========================================================================
# CLI
# =========================================================================


class TestCliMain:
    def _write_config(self, tmp_path, data):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump(data))
        return config_file

    def test_validate_json(self, tmp_path, capsys):
        config_file = self._write_config(tmp_path, {"mirror": _mirror_section()})

        with patch("sys.argv", ["config", "--validate", "--json", "--config", str(config_file)]):
            assert _cli_main() == 0

        output = json.loads(capsys.readouterr().out)
        assert output["validation"]["passed"] is True
        assert output["validation"]["topics"] == ["orders"]

    def test_invalid_config_returns_error(self, tmp_path, capsys):
        config_file = self._write_config(tmp_path, {"mirror": _mirror_section(topics=[])})

        with patch("sys.argv", ["config", "--validate", "--json", "--config", str(config_file)]):
            assert _cli_main() == 1

        assert "No topics" in json.loads(capsys.readouterr().out)["error"]

    def test_prints_help_without_action(self, capsys):
        with patch("sys.argv", ["config"]):
            assert _cli_main() == 0

        assert "usage" in capsys.readouterr().out
