"""
Objlens Configuration Management
=================================

Centralized configuration for objlens using Python dataclasses and
TOML-based persistence.

Configuration is optional: every field has a default, and a missing
default file simply yields those defaults.  Settings affect presentation
and diagnostics only; the decoding contract (ELF tried before TI-COFF,
byte layouts) is fixed and cannot be configured.

Example ``objlens.toml``::

    [logging]
    log_level = "DEBUG"
    log_file = "logs/objlens.log"
    log_json = true

    [decoder]
    name_encoding = "utf-8"

References:
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


# ---------------------------------------------------------------------------
# Default configuration file path relative to the project root
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "objlens.toml"


# ========================== Section Configs ================================


@dataclass(frozen=False, slots=True)
class LoggingConfig:
    """Logging settings used by :class:`shared.logger.ObjLensLogger`.

    Library use should stay quiet by default, hence the WARNING level and
    no console handler.
    """

    log_level: str = "WARNING"
    log_file: Optional[str] = None
    log_json: bool = False
    console_output: bool = False


@dataclass(frozen=False, slots=True)
class DecoderConfig:
    """Settings applied while decoding object files."""

    # Codec for TI-COFF section and symbol names.  latin-1 maps every byte
    # to one character, so no name byte is lost.
    name_encoding: str = "latin-1"


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class ObjLensConfig:
    """Master configuration aggregating every section.

    Usage:
        >>> config = ObjLensConfig.load()                # from default path
        >>> config = ObjLensConfig.load("custom.toml")   # from custom path
        >>> config.decoder.name_encoding
        'latin-1'
    """

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    decoder: DecoderConfig = field(default_factory=DecoderConfig)

    @classmethod
    def load(cls, path: str | Path | None = None) -> ObjLensConfig:
        """Load configuration from a TOML file.

        Args:
            path: Filesystem path to a TOML configuration file.
                  Defaults to ``<project_root>/objlens.toml``.

        Returns:
            A fully-populated :class:`ObjLensConfig` instance.

        Raises:
            FileNotFoundError: If *path* was given explicitly and does not
                exist.
        """
        config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(
                    f"Configuration file not found: {config_path}"
                )
            return cls()

        with open(config_path, "rb") as fh:
            raw: dict[str, Any] = tomllib.load(fh)

        return cls(
            logging=cls._build_section(LoggingConfig, raw.get("logging", {})),
            decoder=cls._build_section(DecoderConfig, raw.get("decoder", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise the configuration tree to a plain dictionary."""
        return asdict(self)

    @staticmethod
    def _build_section(cls: type, data: dict[str, Any]) -> Any:
        """Instantiate dataclass *cls* from the keys of *data* it declares.

        Unknown keys are ignored so newer config files still load.
        """
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)


# ========================= Module-level convenience ========================

def get_config(path: str | Path | None = None) -> ObjLensConfig:
    """Return the process-wide configuration, loading it on first use.

    Passing *path* forces a reload from that file.
    """
    if not hasattr(get_config, "_cached") or path is not None:
        get_config._cached = ObjLensConfig.load(path)  # type: ignore[attr-defined]
    return get_config._cached  # type: ignore[attr-defined]
