"""Configuration loading, saving, and validation for grc-evidence."""

from __future__ import annotations

import base64
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from cryptography.fernet import Fernet, InvalidToken

from grc_evidence.evidence import DEFAULT_DOMAINS
from grc_evidence.exceptions import GrcConfigError
from grc_evidence.utils.logging import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_DIR = Path.home() / ".grc-evidence"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
DEFAULT_RECOMMENDATION_LIMIT = 50

ENV_CLIENT_ID = "AZURE_CLIENT_ID"
ENV_CLIENT_SECRET = "AZURE_CLIENT_SECRET"
ENV_TENANT_ID = "AZURE_TENANT_ID"
ENV_SUBSCRIPTION_ID = "AZURE_SUBSCRIPTION_ID"


def _derive_machine_key() -> bytes:
    """Derive a Fernet key from machine-specific identifiers."""
    import hashlib

    node = platform.node()
    user = os.getenv("USERNAME") or os.getenv("USER") or "grc-evidence"
    seed = f"grc-evidence:{node}:{user}".encode()
    return base64.urlsafe_b64encode(hashlib.sha256(seed).digest())


def _encrypt_secret(plaintext: str) -> str:
    return Fernet(_derive_machine_key()).encrypt(plaintext.encode()).decode()


def _decrypt_secret(ciphertext: str) -> str:
    try:
        return Fernet(_derive_machine_key()).decrypt(ciphertext.encode()).decode()
    except InvalidToken as exc:
        raise GrcConfigError(
            "Failed to decrypt client secret. Config may have been created on a different machine."
        ) from exc


@dataclass(frozen=True)
class CollectionSettings:
    """Knobs the orchestrator and collectors read during a run."""

    domains: tuple[str, ...] = tuple(str(d) for d in DEFAULT_DOMAINS)
    domain_timeout: float | None = None
    recommendation_limit: int = DEFAULT_RECOMMENDATION_LIMIT


@dataclass
class GrcConfig:
    """grc-evidence configuration.

    Credentials may live in the file (secret Fernet-encrypted with a machine
    key) or in the AZURE_* environment variables, which take precedence.
    """

    tenant_id: str = ""
    client_id: str = ""
    client_secret_encrypted: str = ""
    subscription_id: str = ""
    domains: list[str] = field(default_factory=lambda: [str(d) for d in DEFAULT_DOMAINS])
    domain_timeout: float | None = None
    recommendation_limit: int = DEFAULT_RECOMMENDATION_LIMIT

    @property
    def client_secret(self) -> str:
        """Decrypt and return the stored client secret ('' when none is stored)."""
        if not self.client_secret_encrypted:
            return ""
        return _decrypt_secret(self.client_secret_encrypted)

    @client_secret.setter
    def client_secret(self, value: str) -> None:
        self.client_secret_encrypted = _encrypt_secret(value)

    def resolved_tenant_id(self) -> str:
        return os.getenv(ENV_TENANT_ID) or self.tenant_id

    def resolved_client_id(self) -> str:
        return os.getenv(ENV_CLIENT_ID) or self.client_id

    def resolved_client_secret(self) -> str:
        return os.getenv(ENV_CLIENT_SECRET) or self.client_secret

    def resolved_subscription_id(self) -> str:
        return os.getenv(ENV_SUBSCRIPTION_ID) or self.subscription_id

    def settings(self) -> CollectionSettings:
        return CollectionSettings(
            domains=tuple(self.domains),
            domain_timeout=self.domain_timeout,
            recommendation_limit=self.recommendation_limit,
        )

    def validate(self) -> list[str]:
        """Validate configuration, returning a list of error messages.

        Missing credentials are not an error here: a run without them
        degrades to a mock report with remediation guidance.
        """
        errors: list[str] = []
        if not isinstance(self.domains, list) or not all(isinstance(d, str) for d in self.domains):
            errors.append("domains must be a list of domain names")
        if self.domain_timeout is not None and self.domain_timeout <= 0:
            errors.append("domain_timeout must be a positive number of seconds")
        if self.recommendation_limit < 0:
            errors.append("recommendation_limit must not be negative")
        return errors


def load_config(config_path: Path | None = None) -> GrcConfig:
    """Load configuration from YAML file."""
    path = config_path or DEFAULT_CONFIG_FILE

    if not path.exists():
        raise GrcConfigError(
            f"Config file not found at {path}. Run 'grc-evidence init' to create one."
        )

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise GrcConfigError(f"Invalid YAML in config file: {exc}") from exc

    if not isinstance(raw, dict):
        raise GrcConfigError("Config file must contain a YAML mapping.")

    try:
        config = GrcConfig(
            tenant_id=raw.get("tenant_id", ""),
            client_id=raw.get("client_id", ""),
            client_secret_encrypted=raw.get("client_secret_encrypted", ""),
            subscription_id=raw.get("subscription_id", ""),
            domains=raw.get("domains") or [str(d) for d in DEFAULT_DOMAINS],
            domain_timeout=(
                float(raw["domain_timeout"]) if raw.get("domain_timeout") is not None else None
            ),
            recommendation_limit=int(
                raw.get("recommendation_limit", DEFAULT_RECOMMENDATION_LIMIT)
            ),
        )
    except (TypeError, ValueError) as exc:
        raise GrcConfigError(f"Invalid value in config file: {exc}") from exc

    errors = config.validate()
    if errors:
        raise GrcConfigError(f"Config validation failed: {'; '.join(errors)}")

    logger.info("Configuration loaded from %s", path)
    return config


def load_config_or_default(config_path: Path | None = None) -> GrcConfig:
    """Load the config file if present, else fall back to env-only defaults."""
    path = config_path or DEFAULT_CONFIG_FILE
    if not path.exists():
        logger.info("No config file at %s; using environment variables only", path)
        return GrcConfig()
    return load_config(path)


def save_config(config: GrcConfig, config_path: Path | None = None) -> None:
    """Save configuration to YAML file."""
    path = config_path or DEFAULT_CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "tenant_id": config.tenant_id,
        "client_id": config.client_id,
        "client_secret_encrypted": config.client_secret_encrypted,
        "subscription_id": config.subscription_id,
        "domains": list(config.domains),
        "domain_timeout": config.domain_timeout,
        "recommendation_limit": config.recommendation_limit,
    }

    path.write_text(yaml.dump(data, default_flow_style=False), encoding="utf-8")

    # Restrict permissions on config file (contains encrypted secret)
    try:
        path.chmod(0o600)
    except OSError:
        logger.warning("Could not restrict config file permissions (Windows?)")

    logger.info("Configuration saved to %s", path)
