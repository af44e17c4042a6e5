"""
Verification orchestrator.
Single responsibility: run the verification steps for each tenant and hand results to the renderers.
"""

import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .adapters.connection import (
    DuckDBExecutor,
    QueryExecutionError,
    TenantConnectionError,
    TenantConnector,
)
from .config.manager import ConfigurationError, VerifierConfig
from .core.aggregator import TenantSummary, build_summary, log_result
from .core.comparator import ColumnComparator
from .core.existence import check_sku_existence
from .core.introspector import SchemaIntrospector, SchemaLookupError
from .core.mapping import MappingFileError, load_mapping, resolve, resolve_common_columns
from .core.models import ColumnCategory, ColumnMapping, SchemaSnapshot, TenantVerificationResult
from .core.prices import (
    BenchmarkReport,
    PriceTables,
    ReconciliationStrategy,
    benchmark_strategies,
    compare_prices,
    get_strategy,
    verify_price_columns,
)
from .reporting.excel_report import export_workbook, write_summary_json
from .reporting.html_report import HtmlReportGenerator, safe_filename
from .ui.progress import ProgressMonitor
from .utils.logger import get_logger
from .utils.metrics import MetricsCollector


logger = get_logger()


class Step(str, Enum):
    """Per-tenant verification steps, in execution order."""

    CONNECT = "connect"
    INTROSPECT_SCHEMAS = "introspect_schemas"
    RESOLVE_ATTRIBUTE_MAPPINGS = "resolve_attribute_mappings"
    RESOLVE_CATEGORY_MAPPINGS = "resolve_category_mappings"
    RESOLVE_COMMON_COLUMNS = "resolve_common_columns"
    CHECK_SKU_EXISTENCE = "check_sku_existence"
    COMPARE_ATTRIBUTES = "compare_attributes"
    COMPARE_CATEGORIES = "compare_categories"
    COMPARE_COMMON_COLUMNS = "compare_common_columns"
    CHECK_PRICE_PREREQUISITES = "check_price_prerequisites"
    COMPARE_PRICES = "compare_prices"
    SKIP_PRICES = "skip_prices"
    DISCONNECT = "disconnect"


TENANT_FATAL_ERRORS = (TenantConnectionError, SchemaLookupError, QueryExecutionError)


@dataclass
class TenantSchemas:
    old_sku: SchemaSnapshot
    new_sku: SchemaSnapshot
    old_price: SchemaSnapshot
    new_price: SchemaSnapshot


@dataclass
class RunReport:
    """Everything a run produced, per tenant in processing order."""

    results: Dict[str, TenantVerificationResult] = field(default_factory=dict)
    summaries: List[TenantSummary] = field(default_factory=list)
    benchmarks: Dict[str, BenchmarkReport] = field(default_factory=dict)
    report_files: List[Path] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def failed_tenants(self) -> List[str]:
        return [name for name, result in self.results.items() if not result.succeeded]


class VerificationOrchestrator:
    """
    Drive verification across tenants.

    Tenants run sequentially with one exclusive connection each. A failure
    inside one tenant is recorded on its result and never stops the batch.
    """

    def __init__(self, config: VerifierConfig,
                 connector: Optional[TenantConnector] = None,
                 strategy: Optional[ReconciliationStrategy] = None,
                 progress: Optional[ProgressMonitor] = None,
                 metrics: Optional[MetricsCollector] = None):
        """
        Initialize orchestrator.

        Args:
            config: Validated run configuration
            connector: Opens tenant connections (defaults to one built from config)
            strategy: Price reconciliation strategy (defaults to config.price.strategy)
            progress: Progress monitor for terminal output
            metrics: Metrics collector for per-tenant timings

        Raises:
            ConfigurationError: If the configured price strategy is unknown
        """
        self.config = config
        self.connector = connector or TenantConnector(config.database)
        if strategy is None:
            try:
                strategy = get_strategy(config.price.strategy)
            except KeyError as e:
                raise ConfigurationError(str(e.args[0])) from e
        self.strategy = strategy
        self.progress = progress or ProgressMonitor()
        self.metrics = metrics or MetricsCollector()
        self.price_tables = PriceTables(old_table=config.tables.old_price,
                                        new_table=config.tables.new_price)

    def load_mappings(self) -> Tuple[List[ColumnMapping], List[ColumnMapping]]:
        """
        Load the attribute and category mapping files.

        Raises:
            ConfigurationError: If either file cannot be read
        """
        try:
            attribute = load_mapping(self.config.resolve_path(self.config.mappings.attribute))
            category = load_mapping(self.config.resolve_path(self.config.mappings.category))
        except MappingFileError as e:
            raise ConfigurationError(str(e)) from e
        return attribute, category

    def verify_tenant(self, tenant: str,
                      attribute_mappings: Sequence[ColumnMapping],
                      category_mappings: Sequence[ColumnMapping]) -> TenantVerificationResult:
        """
        Run every verification step for one tenant.

        Connection, schema lookup and query failures outside per-column
        comparisons abandon the remaining steps; the error is stored on the
        result and the connection is still closed.

        Returns:
            Finalized tenant result
        """
        result = TenantVerificationResult(tenant=tenant)
        executor: Optional[DuckDBExecutor] = None
        current = Step.CONNECT
        logger.info("orchestrator.tenant.start", tenant=tenant)
        self.progress.start_tenant(tenant)

        def step(name: Step):
            nonlocal current
            current = name
            self.progress.advance(tenant, name.value)

        try:
            executor = self.connector.connect(tenant)
            result.record_step(Step.CONNECT.value)

            step(Step.INTROSPECT_SCHEMAS)
            schemas = self._introspect(executor)
            result.record_step(current.value)

            step(Step.RESOLVE_ATTRIBUTE_MAPPINGS)
            attributes, missing = resolve(attribute_mappings, schemas.old_sku, schemas.new_sku,
                                          self.config.ignored_columns)
            result.record_missing_columns(ColumnCategory.ATTRIBUTE, missing)
            result.record_step(current.value)

            step(Step.RESOLVE_CATEGORY_MAPPINGS)
            categories, missing = resolve(category_mappings, schemas.old_sku, schemas.new_sku,
                                          self.config.ignored_columns)
            result.record_missing_columns(ColumnCategory.CATEGORY, missing)
            result.record_step(current.value)

            step(Step.RESOLVE_COMMON_COLUMNS)
            common, missing = resolve_common_columns(self.config.common_columns,
                                                     schemas.old_sku, schemas.new_sku,
                                                     self.config.ignored_columns)
            result.record_missing_columns(ColumnCategory.COMMON, missing)
            result.record_step(current.value)

            entity_key = self.config.tables.entity_key
            step(Step.CHECK_SKU_EXISTENCE)
            if schemas.old_sku.has(entity_key) and schemas.new_sku.has(entity_key):
                result.record_sku_existence(check_sku_existence(
                    executor, schemas.old_sku, schemas.new_sku, entity_key, tenant=tenant))
                result.record_step(current.value)
            else:
                logger.error("orchestrator.entity_key_missing", tenant=tenant,
                             key=entity_key, old_table=schemas.old_sku.table_name,
                             new_table=schemas.new_sku.table_name)

            comparator = ColumnComparator(executor, self.config.tables.old_sku,
                                          self.config.tables.new_sku,
                                          entity_key=entity_key, tenant=tenant)

            step(Step.COMPARE_ATTRIBUTES)
            outcome = comparator.compare_mappings(attributes, ColumnCategory.ATTRIBUTE,
                                                  schemas.old_sku, schemas.new_sku)
            result.record_mismatches(ColumnCategory.ATTRIBUTE, outcome.records)
            result.record_step(current.value)

            step(Step.COMPARE_CATEGORIES)
            outcome = comparator.compare_mappings(categories, ColumnCategory.CATEGORY,
                                                  schemas.old_sku, schemas.new_sku)
            result.record_mismatches(ColumnCategory.CATEGORY, outcome.records)
            result.record_step(current.value)

            step(Step.COMPARE_COMMON_COLUMNS)
            outcome = comparator.compare_columns(common, schemas.old_sku, schemas.new_sku)
            result.record_mismatches(ColumnCategory.COMMON, outcome.records)
            result.record_step(current.value)

            step(Step.CHECK_PRICE_PREREQUISITES)
            result.record_missing_columns(
                ColumnCategory.PRICE,
                verify_price_columns(schemas.old_price, schemas.new_price))
            result.record_step(current.value)

            step(Step.COMPARE_PRICES)
            prices = compare_prices(executor, self.price_tables,
                                    schemas.old_price, schemas.new_price,
                                    strategy=self.strategy,
                                    row_cap=self.config.price.row_cap, tenant=tenant)
            result.record_prices(prices)
            result.record_step(Step.SKIP_PRICES.value if prices.skipped
                               else Step.COMPARE_PRICES.value)

        except TENANT_FATAL_ERRORS as e:
            logger.error("orchestrator.tenant.failed", tenant=tenant, step=current.value,
                         error_type=type(e).__name__, error=str(e))
            result.record_error(f"{type(e).__name__} during {current.value}: {e}")
        finally:
            if executor is not None:
                self.connector.disconnect(executor)
                result.record_step(Step.DISCONNECT.value)

        result.finalize()
        self.progress.finish_tenant(tenant, result.succeeded)
        logger.info("orchestrator.tenant.complete", tenant=tenant,
                    succeeded=result.succeeded, steps=len(result.completed_steps))
        return result

    def benchmark_tenant(self, tenant: str) -> Optional[BenchmarkReport]:
        """
        Time both price strategies on one tenant.

        Returns:
            Benchmark report, or None when the tenant cannot be benchmarked
        """
        executor = None
        try:
            executor = self.connector.connect(tenant)
            schemas = self._introspect(executor)
            if not verify_price_columns(schemas.old_price, schemas.new_price).is_empty:
                logger.warning("orchestrator.benchmark.skipped", tenant=tenant,
                               reason="missing price columns")
                return None
            return benchmark_strategies(executor, self.price_tables,
                                        row_cap=self.config.price.row_cap,
                                        metrics=self.metrics)
        except TENANT_FATAL_ERRORS as e:
            logger.error("orchestrator.benchmark.failed", tenant=tenant, error=str(e))
            return None
        finally:
            if executor is not None:
                self.connector.disconnect(executor)

    def run(self, tenants: Optional[Sequence[str]] = None,
            benchmark: Optional[bool] = None) -> RunReport:
        """
        Verify every tenant and write reports.

        Args:
            tenants: Tenant names (defaults to config.tenants)
            benchmark: Run the strategy benchmark per tenant (defaults to config)

        Returns:
            Run report with results, summaries and written report files

        Raises:
            ConfigurationError: If the configuration or mapping files are unusable
        """
        tenant_names = list(self.config.tenants if tenants is None else tenants)
        self.config.validate(tenant_names)
        benchmark = self.config.price.benchmark if benchmark is None else benchmark

        attribute_mappings, category_mappings = self.load_mappings()
        reports = self.config.reports
        output_dir = self.config.resolve_path(reports.output_dir)
        html = HtmlReportGenerator(output_dir, old_table=self.config.tables.old_sku,
                                   new_table=self.config.tables.new_sku)
        run = RunReport()

        logger.info("orchestrator.run.start", tenants=len(tenant_names),
                    strategy=self.strategy.name, benchmark=benchmark)
        self.progress.start_run(len(tenant_names))

        try:
            for tenant in tenant_names:
                operation = f"tenant.{tenant}"
                self.metrics.start_operation(operation)
                try:
                    result = self.verify_tenant(tenant, attribute_mappings, category_mappings)
                except Exception as e:
                    logger.error("orchestrator.tenant.unexpected_error", tenant=tenant,
                                 error=str(e), traceback=traceback.format_exc())
                    result = TenantVerificationResult(tenant=tenant)
                    result.record_error(f"{type(e).__name__}: {e}")
                    result.finalize()
                    self.progress.finish_tenant(tenant, False)

                self.metrics.end_operation(operation, success=result.succeeded,
                                           error=result.error)
                self.metrics.record_tenant(result.succeeded)
                run.results[tenant] = result
                run.summaries.append(build_summary(tenant, result))
                log_result(result, logger)

                if benchmark and result.succeeded:
                    report = self.benchmark_tenant(tenant)
                    if report is not None:
                        run.benchmarks[tenant] = report

                self._render(tenant, result, html, run)
        finally:
            self.progress.stop()

        if reports.html:
            run.report_files.append(html.generate_index_page(run.summaries))
        if reports.summary_json:
            run.report_files.append(write_summary_json(html.run_dir / "summary.json",
                                                       run.summaries))

        self.progress.show_run_summary(run.summaries)
        run.metrics = self.metrics.finalize()
        logger.info("orchestrator.run.complete", tenants=len(run.results),
                    failed=len(run.failed_tenants), report_dir=str(html.run_dir))
        return run

    def _introspect(self, executor: DuckDBExecutor) -> TenantSchemas:
        introspector = SchemaIntrospector(executor)
        tables = self.config.tables
        return TenantSchemas(
            old_sku=introspector.snapshot(tables.old_sku),
            new_sku=introspector.snapshot(tables.new_sku),
            old_price=introspector.snapshot(tables.old_price),
            new_price=introspector.snapshot(tables.new_price),
        )

    def _render(self, tenant: str, result: TenantVerificationResult,
                html: HtmlReportGenerator, run: RunReport):
        reports = self.config.reports
        try:
            if reports.html:
                run.report_files.append(html.generate_tenant_report(tenant, result))
            if reports.excel:
                workbook = html.run_dir / f"{safe_filename(tenant)}.xlsx"
                run.report_files.append(export_workbook(workbook, tenant, result))
        except OSError as e:
            logger.error("orchestrator.report_failed", tenant=tenant, error=str(e))
