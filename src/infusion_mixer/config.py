"""Configuration management for Infusion Mixer."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from infusion_mixer.models import SearchConfig, ToleranceConfig

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        log_level: Logging verbosity level.
        catalog_dir: Directory holding syringe/medication catalog files.
        max_fills_per_liquid: Default cap on draws per liquid.
        search_span_steps: Default half-width of the tick search window.
        concentration_tolerance_pct: Default concentration tolerance (%).
        volume_tolerance_pct: Default total-volume tolerance (%).
    """

    log_level: str
    catalog_dir: Path
    max_fills_per_liquid: int
    search_span_steps: int
    concentration_tolerance_pct: float
    volume_tolerance_pct: float

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Returns:
            Settings instance with loaded configuration.
        """
        load_dotenv()

        log_level = os.getenv("LOG_LEVEL", "INFO")
        catalog_dir = Path(os.getenv("CATALOG_DIR", "./data/catalogs"))
        max_fills = int(os.getenv("MAX_FILLS_PER_LIQUID", "20"))
        span_steps = int(os.getenv("SEARCH_SPAN_STEPS", "400"))
        conc_tol = float(os.getenv("CONCENTRATION_TOLERANCE_PCT", "1.0"))
        vol_tol = float(os.getenv("VOLUME_TOLERANCE_PCT", "5.0"))

        logger.debug(
            f"Loaded settings: log_level={log_level}, "
            f"catalog_dir={catalog_dir}, max_fills={max_fills}, "
            f"span_steps={span_steps}"
        )

        return cls(
            log_level=log_level,
            catalog_dir=catalog_dir,
            max_fills_per_liquid=max_fills,
            search_span_steps=span_steps,
            concentration_tolerance_pct=conc_tol,
            volume_tolerance_pct=vol_tol,
        )

    def search_config(self) -> SearchConfig:
        """Build the default search configuration for requests."""
        return SearchConfig(
            max_fills_per_liquid=self.max_fills_per_liquid,
            span_steps=self.search_span_steps,
        )

    def tolerance_config(self) -> ToleranceConfig:
        """Build the default tolerance configuration for requests."""
        return ToleranceConfig(
            concentration_pct=self.concentration_tolerance_pct,
            total_volume_pct=self.volume_tolerance_pct,
        )

    def configure_logging(self) -> None:
        """Apply log_level to the root logger."""
        logging.basicConfig(level=self.log_level.upper())

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.catalog_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Ensured catalog directory exists: {self.catalog_dir}")
