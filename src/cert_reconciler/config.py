"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to .env file
  - Validate types and constraints at startup
  - Keep secrets out of source control

Only AppSettings is a BaseSettings instance. Sub-settings are plain BaseModel
classes populated via env_nested_delimiter="__", so DATABASE__HOST maps to
database.host and SCHEDULER__CRON to scheduler.cron. List-valued settings
(ISSUERS, CERTIFICATES) are given as JSON:

  ISSUERS='[{"name": "prod-ca", "kind": "self-signed", "ready": true}]'
  CERTIFICATES='[{"name": "site", "issuer_ref": "prod-ca",
                  "secret_name": "site-tls", "domains": ["example.com"]}]'
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cert_reconciler.domain.models import CertificateRequest, IssuerDescriptor

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

ISSUER_KINDS = ("self-signed", "http")


class IssuerSettings(BaseModel):
    """
    One issuer: which backend kind serves it and whether it may be used.

    Options by kind:
      self-signed — key_size (default 2048), validity_days (default 90)
      http        — url (required): signing endpoint receiving the request
    """

    name: str = Field(min_length=1)
    namespace: str = Field(default="default", min_length=1)
    kind: str = Field(description="Backend implementation: self-signed | http")
    ready: bool = Field(default=True)
    options: dict[str, str] = Field(default_factory=dict)

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, value: str) -> str:
        if value not in ISSUER_KINDS:
            raise ValueError(f"Unknown issuer kind {value!r}, expected one of {ISSUER_KINDS}")
        return value

    @model_validator(mode="after")
    def require_url_for_http(self) -> IssuerSettings:
        if self.kind == "http" and not self.options.get("url"):
            raise ValueError(f"Issuer {self.name!r} of kind 'http' needs options.url")
        return self

    def to_descriptor(self) -> IssuerDescriptor:
        return IssuerDescriptor(
            name=self.name,
            namespace=self.namespace,
            kind=self.kind,
            ready=self.ready,
            options=dict(self.options),
        )


class CertificateSettings(BaseModel):
    """One declared certificate request."""

    name: str = Field(min_length=1)
    namespace: str = Field(default="default", min_length=1)
    issuer_ref: str = Field(min_length=1)
    secret_name: str = Field(min_length=1)
    domains: list[str] = Field(min_length=1)

    @field_validator("domains")
    @classmethod
    def validate_domains(cls, value: list[str]) -> list[str]:
        """Reject blank entries; hostnames are compared case-sensitively as given."""
        cleaned = [d.strip() for d in value]
        if any(not d for d in cleaned):
            raise ValueError("Domains must not be blank")
        return cleaned

    def to_request(self) -> CertificateRequest:
        return CertificateRequest(
            name=self.name,
            namespace=self.namespace,
            issuer_ref=self.issuer_ref,
            secret_name=self.secret_name,
            domains=tuple(self.domains),
        )


class DatabaseSettings(BaseModel):
    """
    PostgreSQL connection configuration for the credential store.

    Accepts either a full connection string via DATABASE__DSN or individual
    components (DATABASE__HOST, DATABASE__PORT, DATABASE__NAME,
    DATABASE__USERNAME, DATABASE__PASSWORD). The DSN takes priority.
    """

    dsn: SecretStr | None = Field(
        default=None,
        description="Full PostgreSQL connection string (overrides individual fields)",
    )
    host: str | None = Field(default=None, description="PostgreSQL host")
    port: int = Field(default=5432, ge=1, le=65535, description="PostgreSQL port")
    name: str | None = Field(default=None, description="PostgreSQL database name")
    username: str | None = Field(default=None, description="PostgreSQL username")
    password: SecretStr | None = Field(default=None, description="PostgreSQL password")

    @model_validator(mode="after")
    def resolve_dsn(self) -> DatabaseSettings:
        """Build `dsn` from the components when it was not given directly."""
        if self.dsn is not None:
            return self
        missing = [f for f, v in [
            ("DATABASE__HOST", self.host),
            ("DATABASE__NAME", self.name),
            ("DATABASE__USERNAME", self.username),
            ("DATABASE__PASSWORD", self.password),
        ] if not v]
        if missing:
            raise ValueError(
                "Set DATABASE__DSN or provide all of: "
                + ", ".join(missing)
            )
        dsn_value = (
            f"postgresql://{self.username}:{self.password.get_secret_value()}"  # type: ignore[union-attr]
            f"@{self.host}:{self.port}/{self.name}"
        )
        object.__setattr__(self, "dsn", SecretStr(dsn_value))
        return self

    def get_dsn(self) -> str:
        assert self.dsn is not None  # guaranteed by resolve_dsn validator
        return self.dsn.get_secret_value()


class ValidationSettings(BaseModel):
    """Stored-credential acceptance rules."""

    accept_pkcs8_keys: bool = Field(
        default=False,
        description="Also accept PKCS#8 'PRIVATE KEY' blocks holding an RSA key",
    )


class SchedulerSettings(BaseModel):
    """
    Scheduler configuration using a standard 5-field cron expression.

    Format: minute hour day-of-month month day-of-week
    Examples:
      "*/5 * * * *"  — every 5 minutes (default)
      "0 * * * *"    — hourly
    """

    cron: str = Field(
        default="*/5 * * * *",
        description="Cron expression (5 fields: minute hour dom month dow)",
    )

    @field_validator("cron")
    @classmethod
    def validate_cron(cls, value: str) -> str:
        """Reject expressions that don't have exactly 5 space-separated fields."""
        fields = value.strip().split()
        if len(fields) != 5:
            raise ValueError(
                f"Cron expression must have exactly 5 fields "
                f"(minute hour dom month dow), got {len(fields)}: {value!r}"
            )
        return value.strip()


class AppSettings(BaseSettings):
    """
    Root application settings — aggregates all sub-settings.

    Load order (highest priority first):
      1. Environment variables (Kubernetes ConfigMap)
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    database: DatabaseSettings
    issuers: list[IssuerSettings] = Field(default_factory=list)
    certificates: list[CertificateSettings] = Field(default_factory=list)
    validation: ValidationSettings = Field(default_factory=lambda: ValidationSettings())
    scheduler: SchedulerSettings = Field(default_factory=lambda: SchedulerSettings())

    http_timeout_seconds: int = Field(default=30, ge=1)
    run_on_startup: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def reject_duplicates(self) -> AppSettings:
        """Reject duplicate issuer, certificate and target-secret keys."""
        issuer_keys = [(i.namespace, i.name) for i in self.issuers]
        if len(issuer_keys) != len(set(issuer_keys)):
            raise ValueError("Duplicate issuer namespace/name in ISSUERS")
        certificate_keys = [(c.namespace, c.name) for c in self.certificates]
        if len(certificate_keys) != len(set(certificate_keys)):
            raise ValueError("Duplicate certificate namespace/name in CERTIFICATES")
        secret_keys = [(c.namespace, c.secret_name) for c in self.certificates]
        if len(secret_keys) != len(set(secret_keys)):
            raise ValueError("Two certificates target the same namespace/secret_name")
        return self

    def certificate_requests(self) -> list[CertificateRequest]:
        return [c.to_request() for c in self.certificates]

    def issuer_descriptors(self) -> list[IssuerDescriptor]:
        return [i.to_descriptor() for i in self.issuers]
