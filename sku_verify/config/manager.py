"""
Configuration management.
Single responsibility: load, validate, and manage configuration.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from ..utils.logger import get_logger
from ..utils.normalizers import is_safe_identifier


logger = get_logger()


DEFAULT_IGNORED_COLUMNS = ["brand_name", "department_name", "id", "vendor_sku_detail_id", "sku"]

DEFAULT_COMMON_COLUMNS = [
    "name",
    "short_description",
    "long_description",
    "purchase_uom_name",
    "selling_uom_name",
    "uom_factor",
    "tax_type",
    "is_active",
    "ref_item_code",
    "sku_code",
    "ref_sku_code",
    "sku",
    "purchase_uom_id",
    "purchase_uom_type",
    "selling_uom_id",
    "selling_uom_type",
]

ENGINES = ("duckdb", "mysql")


class ConfigurationError(Exception):
    """Exception raised when the run cannot start with the given configuration."""
    pass


@dataclass
class DatabaseConfig:
    """How tenant databases are reached."""

    engine: str = "duckdb"
    path_template: str = "data/{tenant}.duckdb"
    host: str = "localhost"
    port: int = 3306
    user: Optional[str] = None
    password: Optional[str] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.engine not in ENGINES:
            raise ConfigurationError(
                f"Unsupported database engine '{self.engine}'. Use one of: {', '.join(ENGINES)}"
            )

    @property
    def requires_credentials(self) -> bool:
        return self.engine == "mysql"

    @property
    def has_credentials(self) -> bool:
        return bool(self.user) and bool(self.password)


@dataclass
class TableConfig:
    """Names of the legacy and new table families."""

    old_sku: str = "vendor_sku_flat_table"
    new_sku: str = "im_sku_flat_table"
    old_price: str = "vendor_item_price_mapping"
    new_price: str = "im_sku_price_mapping"
    entity_key: str = "sku_code"


@dataclass
class MappingConfig:
    attribute: str = "schemas/attribute-mappings"
    category: str = "schemas/category-mappings"


@dataclass
class PriceConfig:
    strategy: str = "outer_join"
    benchmark: bool = False
    row_cap: Optional[int] = None


@dataclass
class ReportConfig:
    output_dir: str = "reports"
    html: bool = True
    excel: bool = False
    summary_json: bool = True


@dataclass
class LoggingConfig:
    log_dir: Optional[str] = "logs"


@dataclass
class VerifierConfig:
    """Complete run configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    tables: TableConfig = field(default_factory=TableConfig)
    mappings: MappingConfig = field(default_factory=MappingConfig)
    price: PriceConfig = field(default_factory=PriceConfig)
    reports: ReportConfig = field(default_factory=ReportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    tenants: List[str] = field(default_factory=list)
    ignored_columns: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORED_COLUMNS))
    common_columns: List[str] = field(default_factory=lambda: list(DEFAULT_COMMON_COLUMNS))
    base_dir: Path = field(default_factory=Path.cwd)

    def resolve_path(self, path: str) -> Path:
        """Resolve a config-relative path."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.base_dir / candidate

    def validate(self, tenants: Optional[Sequence[str]] = None):
        """
        Check the settings every run needs before any tenant is touched.

        Args:
            tenants: Tenants for this run when they differ from the configured list

        Raises:
            ConfigurationError: If no tenants or required credentials are configured
        """
        if self.database.requires_credentials and not self.database.has_credentials:
            raise ConfigurationError(
                "Database credentials not provided. Set DB_USER and DB_PASSWORD "
                "or database.user/database.password in the config file."
            )
        if not (self.tenants if tenants is None else tenants):
            raise ConfigurationError(
                "No tenant databases specified. Set TENANT_DBS or the tenants list in the config file."
            )
        for name in (self.tables.old_sku, self.tables.new_sku, self.tables.old_price,
                     self.tables.new_price, self.tables.entity_key):
            if not is_safe_identifier(name):
                raise ConfigurationError(f"Invalid table or column name in config: {name!r}")
        if self.price.row_cap is not None:
            self.price.row_cap = _as_int(self.price.row_cap, "price.row_cap")
            if self.price.row_cap < 0:
                raise ConfigurationError("price.row_cap must be non-negative")


class ConfigManager:
    """
    Manage application configuration.
    """

    def __init__(self, config_path: Optional[Path] = None,
                 environ: Optional[Mapping[str, str]] = None):
        """
        Initialize config manager.

        Args:
            config_path: Path to configuration file
            environ: Environment used for overrides (defaults to os.environ)
        """
        self.config_path = Path(config_path) if config_path else Path("verifier.yaml")
        self.environ = os.environ if environ is None else environ
        self.raw: Dict[str, Any] = {}
        self.config: Optional[VerifierConfig] = None

    def load(self) -> VerifierConfig:
        """
        Load configuration from file and environment.

        Returns:
            Parsed configuration

        Raises:
            ConfigurationError: If the config file is missing or invalid
        """
        if not self.config_path.exists():
            raise ConfigurationError(f"Config not found: {self.config_path}")

        logger.info("config.loading", file=str(self.config_path))

        try:
            with open(self.config_path, encoding="utf-8") as f:
                self.raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not isinstance(self.raw, dict):
            raise ConfigurationError(f"Config root must be a mapping: {self.config_path}")

        self.config = self.parse(self.raw, base_dir=self.config_path.resolve().parent)

        logger.info("config.loaded",
                   engine=self.config.database.engine,
                   tenants=len(self.config.tenants),
                   strategy=self.config.price.strategy)

        return self.config

    def parse(self, raw: Mapping[str, Any], base_dir: Optional[Path] = None) -> VerifierConfig:
        """Build a VerifierConfig from a raw mapping plus environment overrides."""
        db_raw = dict(raw.get("database") or {})
        database = DatabaseConfig(
            engine=str(db_raw.get("engine", "duckdb")).lower(),
            path_template=db_raw.get("path_template", "data/{tenant}.duckdb"),
            host=self.environ.get("DB_HOST") or db_raw.get("host", "localhost"),
            port=_as_int(self.environ.get("DB_PORT") or db_raw.get("port", 3306), "database.port"),
            user=self.environ.get("DB_USER") or db_raw.get("user"),
            password=self.environ.get("DB_PASSWORD") or db_raw.get("password"),
        )

        tables = _section(TableConfig, raw, "tables")
        mappings = _section(MappingConfig, raw, "mappings")
        price = _section(PriceConfig, raw, "price")
        reports = _section(ReportConfig, raw, "reports")
        logging_cfg = _section(LoggingConfig, raw, "logging")

        env_tenants = self.environ.get("TENANT_DBS")
        if env_tenants:
            tenants = _split_list(env_tenants)
        else:
            tenants = [str(t).strip() for t in raw.get("tenants") or [] if str(t).strip()]

        config = VerifierConfig(
            database=database,
            tables=tables,
            mappings=mappings,
            price=price,
            reports=reports,
            logging=logging_cfg,
            tenants=tenants,
            base_dir=base_dir or Path.cwd(),
        )
        if "ignored_columns" in raw:
            config.ignored_columns = list(raw.get("ignored_columns") or [])
        if "common_columns" in raw:
            config.common_columns = list(raw.get("common_columns") or [])

        # Database file templates are resolved against the config location
        if database.engine == "duckdb":
            database.path_template = str(config.resolve_path(database.path_template))
        return config


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _section(cls, raw: Mapping[str, Any], name: str):
    values = raw.get(name) or {}
    if not isinstance(values, Mapping):
        raise ConfigurationError(f"Config section '{name}' must be a mapping")
    try:
        return cls(**values)
    except TypeError as e:
        raise ConfigurationError(f"Invalid key in config section '{name}': {e}") from e


SAMPLE_CONFIG = """# SKU Migration Verifier Configuration
# =====================================

database:
  # duckdb: one database file per tenant, path_template gets {tenant}
  # mysql: tenants are MySQL databases attached through DuckDB
  engine: "duckdb"
  path_template: "data/{tenant}.duckdb"
  host: "localhost"
  port: 3306
  # user/password are read from DB_USER / DB_PASSWORD when unset

tenants: []  # or TENANT_DBS=tenant_a,tenant_b

tables:
  old_sku: "vendor_sku_flat_table"
  new_sku: "im_sku_flat_table"
  old_price: "vendor_item_price_mapping"
  new_price: "im_sku_price_mapping"

mappings:
  attribute: "schemas/attribute-mappings"
  category: "schemas/category-mappings"

ignored_columns: ["brand_name", "department_name", "id", "vendor_sku_detail_id", "sku"]

price:
  strategy: "outer_join"  # or "nested"
  benchmark: false
  row_cap: null

reports:
  output_dir: "reports"
  html: true
  excel: false
  summary_json: true

logging:
  log_dir: "logs"
"""


def create_sample_config(output_path: Path) -> Path:
    """
    Create a sample configuration file.

    Args:
        output_path: Where to save the config
    """
    output_path.write_text(SAMPLE_CONFIG, encoding="utf-8")
    logger.info("config.sample_created", file=str(output_path))
    return output_path
