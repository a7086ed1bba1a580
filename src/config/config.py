"""Topic mirror configuration from YAML file and environment.

Loads from config/config.yaml (optional) with all settings under a single
`mirror:` section:
- Source and sink cluster connection settings
- Topic specs and reconciliation timing
- Mirror loop and sink producer settings

Environment variables ARE supported using ${VAR_NAME} syntax in YAML files,
and selected settings can be overridden directly by environment variables
(SOURCE_BOOTSTRAP_SERVERS, MIRROR_TOPICS, ...).
"""

import json
import logging
import os
import re
import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Optional

import yaml

from core.errors import ConfigurationError
from core.utils import generate_worker_id
from topic_mirror.offsets import OFFSET_END, TopicOffsetPolicy, parse_offset, parse_topic_specs

# Configure module logger
logger = logging.getLogger(__name__)

SECURITY_PROTOCOLS = ["PLAINTEXT", "SSL", "SASL_PLAINTEXT", "SASL_SSL"]
SASL_MECHANISMS = ["PLAIN", "SCRAM-SHA-256", "SCRAM-SHA-512", "GSSAPI"]
AUTO_OFFSET_RESET_VALUES = ["earliest", "latest", "none"]
ACKS_VALUES = ["0", "1", "all", 0, 1, -1]
COMPRESSION_TYPES = ["none", "gzip", "snappy", "lz4", "zstd"]

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        # Support both ${VAR} and ${VAR:-default} syntax
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge overlay into base dict."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def get_config_value(env_var: str, yaml_value: Any, default: Any = None) -> Any:
    """Resolve a setting: non-empty environment variable, then non-empty YAML value, then default."""
    env_value = os.getenv(env_var)
    if env_value is not None and env_value != "":
        return env_value
    if yaml_value is not None and yaml_value != "":
        return yaml_value
    return default


def _resolve_setting(
    overrides: Dict[str, Any], key: str, env_var: str, yaml_value: Any, default: Any = None
) -> Any:
    """Resolve a setting: command-line override, then get_config_value."""
    if overrides.get(key) is not None:
        return overrides[key]
    return get_config_value(env_var, yaml_value, default)


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}", cause=e) from e


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}", cause=e) from e


# Default config file: config/config.yaml in src/ directory
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"


@dataclass(frozen=True)
class BrokerConfig:
    """Connection settings for one cluster (source or sink).

    All timing values in milliseconds.
    """

    bootstrap_servers: str = ""
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = "PLAIN"
    sasl_plain_username: str = ""
    sasl_plain_password: str = field(default="", repr=False)
    sasl_kerberos_service_name: str = "kafka"
    ssl_cafile: str = ""
    ssl_cadata: str = field(default="", repr=False)
    ssl_insecure: bool = False
    request_timeout_ms: int = 40000
    metadata_max_age_ms: int = 300000

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], env_prefix: str) -> "BrokerConfig":
        """Build from a YAML section, letting {env_prefix}_* variables win."""
        return cls(
            bootstrap_servers=get_config_value(
                f"{env_prefix}_BOOTSTRAP_SERVERS", data.get("bootstrap_servers"), ""
            ),
            security_protocol=str(
                get_config_value(
                    f"{env_prefix}_SECURITY_PROTOCOL", data.get("security_protocol"), "PLAINTEXT"
                )
            ).upper(),
            sasl_mechanism=str(
                get_config_value(f"{env_prefix}_SASL_MECHANISM", data.get("sasl_mechanism"), "PLAIN")
            ).upper(),
            sasl_plain_username=get_config_value(
                f"{env_prefix}_SASL_USERNAME", data.get("sasl_plain_username"), ""
            ),
            sasl_plain_password=get_config_value(
                f"{env_prefix}_SASL_PASSWORD", data.get("sasl_plain_password"), ""
            ),
            sasl_kerberos_service_name=data.get("sasl_kerberos_service_name", "kafka"),
            ssl_cafile=get_config_value(f"{env_prefix}_SSL_CAFILE", data.get("ssl_cafile"), ""),
            ssl_cadata=get_config_value(f"{env_prefix}_SSL_CADATA", data.get("ssl_cadata"), ""),
            ssl_insecure=_as_bool(
                get_config_value(f"{env_prefix}_SSL_INSECURE", data.get("ssl_insecure"), False),
                f"{env_prefix.lower()}.ssl_insecure",
            ),
            request_timeout_ms=_as_int(
                data.get("request_timeout_ms", 40000), f"{env_prefix.lower()}.request_timeout_ms"
            ),
            metadata_max_age_ms=_as_int(
                data.get("metadata_max_age_ms", 300000), f"{env_prefix.lower()}.metadata_max_age_ms"
            ),
        )

    @property
    def uses_sasl(self) -> bool:
        return self.security_protocol.startswith("SASL")

    @property
    def uses_ssl(self) -> bool:
        return self.security_protocol.endswith("SSL")

    def validate(self, context: str) -> None:
        """Validate connection settings.

        Raises:
            ConfigurationError: On missing or inconsistent settings
        """
        if not self.bootstrap_servers:
            raise ConfigurationError(f"{context}: bootstrap_servers is required")
        if self.security_protocol not in SECURITY_PROTOCOLS:
            raise ConfigurationError(
                f"{context}: security_protocol must be one of {SECURITY_PROTOCOLS}, "
                f"got '{self.security_protocol}'"
            )
        if self.uses_sasl:
            if self.sasl_mechanism not in SASL_MECHANISMS:
                raise ConfigurationError(
                    f"{context}: sasl_mechanism must be one of {SASL_MECHANISMS}, "
                    f"got '{self.sasl_mechanism}'"
                )
            if self.sasl_mechanism != "GSSAPI" and not (
                self.sasl_plain_username and self.sasl_plain_password
            ):
                raise ConfigurationError(
                    f"{context}: sasl_plain_username and sasl_plain_password are required "
                    f"for {self.sasl_mechanism}"
                )
        if self.ssl_cafile and self.ssl_cadata:
            raise ConfigurationError(f"{context}: set only one of ssl_cafile and ssl_cadata")
        if self.request_timeout_ms <= 0:
            raise ConfigurationError(
                f"{context}: request_timeout_ms must be > 0, got {self.request_timeout_ms}"
            )


@dataclass(frozen=True)
class ProducerSettings:
    """Sink producer tuning."""

    acks: Any = "all"
    linger_ms: int = 5
    compression_type: Optional[str] = None
    max_batch_size: int = 16384

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProducerSettings":
        compression = data.get("compression_type")
        return cls(
            acks=data.get("acks", "all"),
            linger_ms=_as_int(data.get("linger_ms", 5), "producer.linger_ms"),
            compression_type=None if compression in (None, "none") else compression,
            max_batch_size=_as_int(data.get("max_batch_size", 16384), "producer.max_batch_size"),
        )

    def validate(self) -> None:
        if self.acks not in ACKS_VALUES:
            raise ConfigurationError(f"producer: acks must be one of {ACKS_VALUES}, got '{self.acks}'")
        if self.compression_type is not None and self.compression_type not in COMPRESSION_TYPES:
            raise ConfigurationError(
                f"producer: compression_type must be one of {COMPRESSION_TYPES}, "
                f"got '{self.compression_type}'"
            )
        if self.linger_ms < 0:
            raise ConfigurationError(f"producer: linger_ms must be >= 0, got {self.linger_ms}")
        if self.max_batch_size <= 0:
            raise ConfigurationError(
                f"producer: max_batch_size must be > 0, got {self.max_batch_size}"
            )


@dataclass(frozen=True)
class RunConfig:
    """Complete, immutable settings for one mirror run.

    Configuration structure:
        mirror:
          topics: [...]             # Topic specs (topic, topic@offset, topic@p:o,...)
          timeout_seconds: 30       # Bound for every admin RPC and convergence wait
          poll_interval_seconds: 1.0
          default_offset: latest
          replication_factor: -1   # -1 = broker default
          fetch_timeout_ms: 1000
          auto_offset_reset: earliest
          wait_for_delivery: false
          stats_interval_seconds: 30
          client_id: ...            # Generated when absent
          source: {...}             # BrokerConfig
          sink: {...}               # BrokerConfig
          producer: {...}           # ProducerSettings
    """

    topics: tuple[str, ...]
    policies: Mapping[str, TopicOffsetPolicy]
    source: BrokerConfig
    sink: BrokerConfig
    timeout_seconds: float = 30.0
    poll_interval_seconds: float = 1.0
    default_offset: int = OFFSET_END
    replication_factor: int = -1
    fetch_timeout_ms: int = 1000
    auto_offset_reset: str = "earliest"
    wait_for_delivery: bool = False
    stats_interval_seconds: float = 30.0
    client_id: str = field(default_factory=lambda: generate_worker_id("topic-mirror"))
    producer: ProducerSettings = field(default_factory=ProducerSettings)

    def __post_init__(self) -> None:
        if not isinstance(self.policies, MappingProxyType):
            object.__setattr__(self, "policies", MappingProxyType(dict(self.policies)))

    def validate(self) -> None:
        """Validate settings and constraints.

        Raises:
            ConfigurationError: On the first invalid setting
        """
        if not self.topics:
            raise ConfigurationError("No topics to mirror were specified")
        self.source.validate("source")
        self.sink.validate("sink")
        self.producer.validate()

        if self.timeout_seconds <= 0:
            raise ConfigurationError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.poll_interval_seconds <= 0:
            raise ConfigurationError(
                f"poll_interval_seconds must be > 0, got {self.poll_interval_seconds}"
            )
        if self.replication_factor == 0 or self.replication_factor < -1:
            raise ConfigurationError(
                f"replication_factor must be -1 (broker default) or >= 1, "
                f"got {self.replication_factor}"
            )
        if self.fetch_timeout_ms <= 0:
            raise ConfigurationError(f"fetch_timeout_ms must be > 0, got {self.fetch_timeout_ms}")
        if self.auto_offset_reset not in AUTO_OFFSET_RESET_VALUES:
            raise ConfigurationError(
                f"auto_offset_reset must be one of {AUTO_OFFSET_RESET_VALUES}, "
                f"got '{self.auto_offset_reset}'"
            )
        if self.stats_interval_seconds <= 0:
            raise ConfigurationError(
                f"stats_interval_seconds must be > 0, got {self.stats_interval_seconds}"
            )


def _resolve_topic_specs(
    topic_specs: Optional[Iterable[str]], mirror_config: Dict[str, Any]
) -> list[str]:
    """Topic specs from the caller, else MIRROR_TOPICS, else mirror.topics."""
    if topic_specs:
        return list(topic_specs)

    env_topics = os.getenv("MIRROR_TOPICS")
    if env_topics:
        return env_topics.split()

    yaml_topics = mirror_config.get("topics") or []
    if isinstance(yaml_topics, str):
        yaml_topics = yaml_topics.split()
    return [str(spec) for spec in yaml_topics]


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    topic_specs: Optional[Iterable[str]] = None,
) -> RunConfig:
    """Load the run configuration.

    The config file is optional when config_path is not given: everything can
    come from environment variables. An explicit config_path must exist.

    Args:
        config_path: YAML file (default: src/config/config.yaml if present)
        overrides: Values deep-merged over the `mirror:` section (CLI flags)
        topic_specs: Topic specs from the command line; take precedence

    Raises:
        ConfigurationError: On a missing file or any invalid setting
        FormatError: If a topic spec is malformed
        DuplicateTopicError: If a topic is requested twice
    """
    if config_path is not None and not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    path = config_path or DEFAULT_CONFIG_FILE
    yaml_data: Dict[str, Any] = {}
    if path.exists():
        logger.info(f"Loading configuration from file: {path}")
        yaml_data = _expand_env_vars(load_yaml(path))
        if "mirror" not in yaml_data:
            raise ConfigurationError(
                f"Invalid config file {path}: missing 'mirror:' section\n"
                "See config.yaml.example for correct structure"
            )
    else:
        logger.debug("No configuration file, using environment variables only")

    mirror_config = yaml_data.get("mirror") or {}
    overrides = overrides or {}

    if overrides:
        logger.debug(f"Applying overrides: {list(overrides.keys())}")
        mirror_config = _deep_merge(mirror_config, overrides)

    topics, policies = parse_topic_specs(_resolve_topic_specs(topic_specs, mirror_config))

    default_offset = str(mirror_config.get("default_offset", "latest"))
    client_id = _resolve_setting(
        overrides, "client_id", "MIRROR_CLIENT_ID", mirror_config.get("client_id")
    )

    config_kwargs: Dict[str, Any] = {}
    if client_id:
        config_kwargs["client_id"] = str(client_id)

    config = RunConfig(
        topics=topics,
        policies=policies,
        source=BrokerConfig.from_dict(mirror_config.get("source") or {}, "SOURCE"),
        sink=BrokerConfig.from_dict(mirror_config.get("sink") or {}, "SINK"),
        timeout_seconds=_as_float(
            _resolve_setting(
                overrides,
                "timeout_seconds",
                "MIRROR_TIMEOUT_SECONDS",
                mirror_config.get("timeout_seconds"),
                30,
            ),
            "timeout_seconds",
        ),
        poll_interval_seconds=_as_float(
            mirror_config.get("poll_interval_seconds", 1.0), "poll_interval_seconds"
        ),
        default_offset=parse_offset(default_offset),
        replication_factor=_as_int(
            mirror_config.get("replication_factor", -1), "replication_factor"
        ),
        fetch_timeout_ms=_as_int(mirror_config.get("fetch_timeout_ms", 1000), "fetch_timeout_ms"),
        auto_offset_reset=str(mirror_config.get("auto_offset_reset", "earliest")).lower(),
        wait_for_delivery=_as_bool(
            mirror_config.get("wait_for_delivery", False), "wait_for_delivery"
        ),
        stats_interval_seconds=_as_float(
            mirror_config.get("stats_interval_seconds", 30), "stats_interval_seconds"
        ),
        producer=ProducerSettings.from_dict(mirror_config.get("producer") or {}),
        **config_kwargs,
    )

    logger.debug("Configuration loaded successfully:")
    logger.debug(f"  - Source bootstrap servers: {config.source.bootstrap_servers}")
    logger.debug(f"  - Sink bootstrap servers: {config.sink.bootstrap_servers}")
    logger.debug(f"  - Topics: {', '.join(config.topics)}")

    logger.debug("Validating configuration...")
    config.validate()
    logger.debug("Configuration validation passed")

    return config


def _cli_main() -> int:
    """CLI entry point for config validation and debugging."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Topic Mirror Configuration Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate configuration
  python -m config.config --validate

  # Show merged configuration
  python -m config.config --show-merged

  # Use custom config file
  python -m config.config --config /path/to/config.yaml --validate

  # JSON output for automation
  python -m config.config --validate --json
        """,
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration structure and completeness",
    )
    parser.add_argument(
        "--show-merged",
        action="store_true",
        help="Display configuration after environment expansion as YAML",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.yaml file (default: src/config/config.yaml)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format instead of human-readable",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s: %(message)s",
    )

    if not args.validate and not args.show_merged:
        parser.print_help()
        return 0

    try:
        config = load_config(config_path=args.config)

        config_path = args.config or DEFAULT_CONFIG_FILE
        config_dict = _expand_env_vars(load_yaml(config_path))

        output = {}

        if args.validate:
            # Validation happens during load_config(), if we got here it passed
            if args.json:
                output["validation"] = {
                    "passed": True,
                    "errors": [],
                    "topics": list(config.topics),
                }
            else:
                print("✓ Configuration validation passed")
                print(f"  - Source: {config.source.bootstrap_servers}")
                print(f"  - Sink: {config.sink.bootstrap_servers}")
                print(f"  - Topics: {', '.join(config.topics)}")

        if args.show_merged:
            if args.json:
                output["merged_config"] = config_dict
            else:
                print("\nConfiguration:")
                print("=" * 80)
                print(yaml.dump(config_dict, default_flow_style=False, sort_keys=False))
                print("=" * 80)

        if args.json:
            print(json.dumps(output, indent=2))

        return 0

    except ConfigurationError as e:
        if args.json:
            print(json.dumps({"error": str(e)}))
        else:
            print(f"✗ Configuration error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(_cli_main())
