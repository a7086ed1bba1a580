"""Shared Kafka connection and security configuration builder."""

import ssl

from config.config import BrokerConfig


def build_ssl_context(config: BrokerConfig) -> ssl.SSLContext:
    """Create the SSL context for a cluster.

    A CA file or inline PEM data replaces the system trust store.
    ssl_insecure disables hostname and certificate verification.
    """
    if config.ssl_cafile:
        context = ssl.create_default_context(cafile=config.ssl_cafile)
    elif config.ssl_cadata:
        context = ssl.create_default_context(cadata=config.ssl_cadata)
    else:
        context = ssl.create_default_context()

    if config.ssl_insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    return context


def build_kafka_security_config(config: BrokerConfig) -> dict:
    """Build Kafka security config dict from BrokerConfig.

    Handles PLAIN, SCRAM-SHA-256/512, GSSAPI SASL mechanisms and SSL context creation.
    Returns an empty dict for PLAINTEXT connections.
    """
    if config.security_protocol == "PLAINTEXT":
        return {}

    security_config: dict = {"security_protocol": config.security_protocol}

    if config.uses_ssl:
        security_config["ssl_context"] = build_ssl_context(config)

    if config.uses_sasl:
        security_config["sasl_mechanism"] = config.sasl_mechanism
        if config.sasl_mechanism == "GSSAPI":
            security_config["sasl_kerberos_service_name"] = config.sasl_kerberos_service_name
        else:
            security_config["sasl_plain_username"] = config.sasl_plain_username
            security_config["sasl_plain_password"] = config.sasl_plain_password

    return security_config


def build_connection_config(config: BrokerConfig, client_id: str) -> dict:
    """Common keyword arguments for every aiokafka client of one cluster."""
    return {
        "bootstrap_servers": config.bootstrap_servers,
        "client_id": client_id,
        "request_timeout_ms": config.request_timeout_ms,
        "metadata_max_age_ms": config.metadata_max_age_ms,
        **build_kafka_security_config(config),
    }
