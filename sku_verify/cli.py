"""
Command line interface.
Single responsibility: parse arguments, load configuration and start a verification run.
"""

import argparse
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config.manager import ConfigManager, ConfigurationError, VerifierConfig, create_sample_config
from .core.prices import STRATEGIES
from .orchestrator import VerificationOrchestrator
from .ui.progress import get_progress_monitor
from .utils.logger import get_logger, set_log_file, set_verbose


logger = get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sku-verify",
        description="SKU Migration Verifier - reconcile legacy and migrated SKU tables"
    )

    parser.add_argument(
        "config",
        nargs="?",
        default="verifier.yaml",
        help="Configuration file (default: verifier.yaml)"
    )

    parser.add_argument(
        "--strategy",
        choices=sorted(STRATEGIES),
        help="Price reconciliation strategy (overrides config)"
    )

    parser.add_argument(
        "--benchmark",
        action="store_true",
        help="Time both price strategies per tenant after verification"
    )

    parser.add_argument(
        "--row-cap",
        type=int,
        help="Limit the number of price key pairs examined"
    )

    parser.add_argument(
        "--tenants",
        help="Comma separated tenant databases (overrides config and TENANT_DBS)"
    )

    parser.add_argument(
        "--no-html",
        action="store_true",
        help="Do not write HTML reports"
    )

    parser.add_argument(
        "--excel",
        action="store_true",
        help="Also write an Excel workbook per tenant"
    )

    parser.add_argument(
        "--no-rich",
        action="store_true",
        help="Disable Rich progress bars"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print debug entries, including every executed query"
    )

    parser.add_argument(
        "--create-sample",
        action="store_true",
        help="Create sample configuration file"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"SKU Migration Verifier v{__version__}"
    )

    return parser


def apply_overrides(config: VerifierConfig, args: argparse.Namespace) -> VerifierConfig:
    """Apply command line overrides on top of the loaded configuration."""
    if args.strategy:
        config.price.strategy = args.strategy
    if args.benchmark:
        config.price.benchmark = True
    if args.row_cap is not None:
        config.price.row_cap = args.row_cap
    if args.tenants:
        config.tenants = [t.strip() for t in args.tenants.split(",") if t.strip()]
    if args.no_html:
        config.reports.html = False
    if args.excel:
        config.reports.excel = True
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        set_verbose(True)

    if args.create_sample:
        create_sample_config(Path("verifier_sample.yaml"))
        return 0

    try:
        config = apply_overrides(ConfigManager(Path(args.config)).load(), args)

        if config.logging.log_dir:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file = config.resolve_path(config.logging.log_dir) / f"verification-{timestamp}.log"
            set_log_file(log_file)
            logger.info("cli.log_file", file=str(log_file))

        orchestrator = VerificationOrchestrator(
            config, progress=get_progress_monitor(not args.no_rich)
        )
        run = orchestrator.run()
    except ConfigurationError as e:
        logger.error("cli.configuration_error", error=str(e))
        print("Use --create-sample to create a sample configuration")
        return 1

    if run.failed_tenants:
        logger.warning("cli.tenants_failed", tenants=run.failed_tenants)
    logger.success("cli.verification_complete", tenants=len(run.results))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
