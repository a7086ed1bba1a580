"""Configuration loading for the topic mirror.

Configuration is read from an optional YAML file (config/config.yaml) with a
single `mirror:` section, overridden by environment variables and command
line flags, and produces one immutable RunConfig passed explicitly to each
component.

Configuration Priority
---------------------

Settings are merged in the following priority (highest to lowest):

1. Command line (topic specs, overrides)
2. Environment variables (SOURCE_*, SINK_*, MIRROR_*)
3. YAML configuration file
4. Dataclass defaults

Usage Examples
--------------

    >>> from config import load_config
    >>> config = load_config(topic_specs=["orders@earliest", "payments@0:10,1:20"])
    >>> config.topics
    ('orders', 'payments')
"""

from config.config import (
    BrokerConfig,
    ProducerSettings,
    RunConfig,
    get_config_value,
    load_config,
)

__all__ = [
    "load_config",
    "get_config_value",
    "RunConfig",
    "BrokerConfig",
    "ProducerSettings",
]
