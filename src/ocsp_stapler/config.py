"""
Configuration — typed, validated settings loaded from environment/.env/CLI.

Uses pydantic-settings to:
  - Load from OCSP_STAPLER_* environment variables
  - Fall back to a .env file
  - Optionally parse command-line flags (--cert_names, --force_update, ...)
  - Validate types and cross-field constraints at startup

Hook mode is switched on by the RENEWED_LINEAGE variable that certbot sets
for deploy hooks. In that mode every standalone-only option is rejected,
because certbot has already pinned the single lineage to process. All
configuration errors surface when AppSettings is constructed, before any
lineage is touched.

env_nested_delimiter="__" maps OCSP_STAPLER_SCHEDULER__CRON → scheduler.cron.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ocsp_stapler.adapters.reloader import DEFAULT_RELOAD_COMMAND
from ocsp_stapler.domain.models import HookMode, RunMode, StandaloneMode, Verbosity

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

DEFAULT_CERTBOT_DIR = Path("/etc/letsencrypt/live")
DEFAULT_OUTPUT_DIR = Path("/etc/nginx/ocsp-cache")


class SchedulerSettings(BaseModel):
    """
    Daemon-mode schedule using a standard 5-field cron expression.

    Format: minute hour day-of-month month day-of-week
    Examples:
      "0 */6 * * *"  — every 6 hours (default)
      "17 3,15 * * *" — twice a day at 03:17 and 15:17
    """

    cron: str = Field(
        default="0 */6 * * *",
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
    Root application settings.

    Load order (highest priority first):
      1. Command-line flags (only when parsing is requested by main())
      2. Environment variables
      3. .env file
      4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="OCSP_STAPLER_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
        cli_prog_name="ocsp-stapler",
    )

    # Standalone selection
    certbot_dir: Path | None = Field(
        default=None,
        description=f"Directory holding certbot lineages (default {DEFAULT_CERTBOT_DIR})",
    )
    cert_names: list[str] = Field(
        default_factory=list,
        description="Only process these lineages (default: all under certbot_dir)",
    )
    responders: dict[str, str] = Field(
        default_factory=dict,
        description="Lineage name → OCSP responder URL overriding the certificate's own",
    )
    force_update: bool = Field(
        default=False, description="Fetch new responses even if the cached ones are fresh"
    )

    # Hook mode, set by certbot for --deploy-hook commands
    renewed_lineage: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("renewed_lineage", "RENEWED_LINEAGE"),
        description="Lineage directory certbot just renewed (switches to hook mode)",
    )

    # Output and reload
    output_dir: Path = Field(default=DEFAULT_OUTPUT_DIR)
    reload_webserver: bool = Field(default=True)
    reload_command: list[str] = Field(default_factory=lambda: list(DEFAULT_RELOAD_COMMAND))
    reload_timeout_seconds: int = Field(default=60, ge=1)

    # Daemon mode
    daemon: bool = Field(default=False, description="Keep running and refresh on a schedule")
    scheduler: SchedulerSettings = Field(default_factory=lambda: SchedulerSettings())
    run_on_startup: bool = Field(default=True)

    http_timeout_seconds: int = Field(default=10, ge=1)
    verbosity: Verbosity = Field(default=Verbosity.NORMAL)
    log_level: str = Field(default="INFO")

    @field_validator("verbosity", mode="before")
    @classmethod
    def parse_verbosity(cls, value: object) -> object:
        """Accept "quiet" / "normal" / "verbose" as well as 0 / 1 / 2."""
        if isinstance(value, str) and not value.strip().isdigit():
            try:
                return Verbosity[value.strip().upper()]
            except KeyError:
                raise ValueError(
                    f"verbosity must be one of quiet, normal, verbose; got {value!r}"
                ) from None
        return value

    @field_validator("responders")
    @classmethod
    def validate_responder_urls(cls, value: dict[str, str]) -> dict[str, str]:
        for name, url in value.items():
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"Responder URL for {name!r} must be http(s): {url!r}")
        return value

    @field_validator("reload_command")
    @classmethod
    def validate_reload_command(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("reload_command must not be empty")
        return value

    @model_validator(mode="after")
    def check_mode_exclusivity(self) -> AppSettings:
        """
        Reject hook mode combined with standalone-only options.

        Also rejects responder overrides for lineages that were not named
        explicitly, and daemon mode for a one-shot hook invocation.
        """
        if self.is_hook_mode:
            conflicting = [
                name
                for name, is_set in [
                    ("cert_names", bool(self.cert_names)),
                    ("certbot_dir", self.certbot_dir is not None),
                    ("responders", bool(self.responders)),
                    ("force_update", self.force_update),
                    ("daemon", self.daemon),
                ]
                if is_set
            ]
            if conflicting:
                raise ValueError(
                    "RENEWED_LINEAGE is set (certbot deploy hook), which cannot be combined with: "
                    + ", ".join(conflicting)
                )
        unknown = sorted(set(self.responders) - set(self.cert_names))
        if unknown:
            raise ValueError(
                "responders may only name lineages listed in cert_names; unknown: "
                + ", ".join(unknown)
            )
        return self

    @property
    def is_hook_mode(self) -> bool:
        return self.renewed_lineage is not None

    def run_mode(self) -> RunMode:
        """The RunMode variant selected by these settings."""
        if self.renewed_lineage is not None:
            return HookMode(lineage_path=self.renewed_lineage)
        return StandaloneMode(
            root_dir=self.certbot_dir or DEFAULT_CERTBOT_DIR,
            lineage_names=tuple(dict.fromkeys(self.cert_names)),
            responder_overrides=dict(self.responders),
            force_update=self.force_update,
        )
