"""Run settings from the environment, with .env in the working directory taking precedence."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_SITE = "192.168.12.73"


def _env_bool(value: str | None) -> bool:
    return str(value or "").strip().lower() in ("true", "1", "yes", "on")


def mask(value: str) -> str:
    """Mask a secret for logging: first 3 and last 4 characters."""
    if not value:
        return ""
    return value[:3] + "..." + value[-4:]


@dataclass(frozen=True)
class Settings:
    """Immutable configuration for one report run."""

    site: str = DEFAULT_SITE
    port: int = 502
    modbus_timeout: float = 3.0
    ttid_csv: Path = Path("sample_ttids.csv")
    position_csv: Path = Path("sample_positions.csv")
    spec_dir: Path = Path("json")
    output_dir: Path = Path("modbus_csv_outputs")
    graphql_url: str = ""
    access_token: str = ""
    xsrf_token: str = ""
    xsrf_cookie: str = ""
    cookie: str = ""
    toggle_timeout: float = 8.0
    verbose: bool = False

    @property
    def mode_url(self) -> str:
        return self.graphql_url or f"https://{self.site}/graphql"

    def log_summary(self) -> None:
        logger.info("Site:          %s", self.site)
        logger.info("GraphQL URL:   %s", self.mode_url)
        logger.info("TTID CSV:      %s%s", self.ttid_csv, "" if self.ttid_csv.is_file() else " (missing)")
        logger.info("Position CSV:  %s%s", self.position_csv, "" if self.position_csv.is_file() else " (missing)")
        logger.info("Spec dir:      %s", self.spec_dir)
        logger.info("Output dir:    %s", self.output_dir)
        logger.info("ACCESS_TOKEN:  %s", mask(self.access_token))
        logger.info("XSRF_TOKEN:    %s", mask(self.xsrf_token))
        logger.info("_XSRF_COOKIE:  %s", mask(self.xsrf_cookie))


def load_settings(env_file: Path | str | None = None, override: bool = True) -> Settings:
    """
    Build Settings from environment variables after loading ``env_file``
    (default: .env in the current directory). Values in the file override the shell.
    """
    path = Path(env_file) if env_file is not None else Path.cwd() / ".env"
    if path.is_file():
        load_dotenv(path, override=override)
        logger.debug("Loaded environment from %s", path)

    env = os.environ
    timeout_ms = float(env.get("TIMEOUT_MS") or 8000)
    return Settings(
        site=env.get("SITE") or DEFAULT_SITE,
        port=int(env.get("MODBUS_PORT") or 502),
        modbus_timeout=float(env.get("MODBUS_TIMEOUT") or 3.0),
        ttid_csv=Path(env.get("TTID_CSV_PATH") or "sample_ttids.csv"),
        position_csv=Path(env.get("POSITION_CSV_PATH") or "sample_positions.csv"),
        spec_dir=Path(env.get("SPEC_DIR") or "json"),
        output_dir=Path(env.get("OUTPUT_DIR") or "modbus_csv_outputs"),
        graphql_url=env.get("GRAPHQL_URL", ""),
        access_token=env.get("ACCESS_TOKEN", ""),
        xsrf_token=env.get("XSRF_TOKEN", ""),
        xsrf_cookie=env.get("_XSRF_COOKIE", ""),
        cookie=env.get("COOKIE", ""),
        toggle_timeout=timeout_ms / 1000.0,
        verbose=_env_bool(env.get("VERBOSE")),
    )
