"""
Main entry point for the CAS ledger pipeline.

This module provides the CLI interface and orchestrates the pipeline
from statement text through classification, parsing, aggregation,
valuation and validation.
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from cas_ledger.aggregator import SchemeAggregator
from cas_ledger.config import DEFAULT_CONFIG, PipelineConfig
from cas_ledger.entity_extractor import EntityExtractor, extract_statement_period
from cas_ledger.exceptions import CASLedgerError, FatalParseError
from cas_ledger.extractor import PDFExtractor
from cas_ledger.line_classifier import LineClassifier
from cas_ledger.models import Diagnostics, LineRole, ParseSkip, Portfolio, Transaction
from cas_ledger.summarizer import PortfolioSummarizer, SimulatedGrowthValuation, ValuationSource
from cas_ledger.transactions_parser import FieldOrderPolicy, TransactionLineParser
from cas_ledger.validator import PortfolioValidator

logger = logging.getLogger(__name__)

MIN_PRINTABLE_RATIO = 0.85


def _check_input(text) -> None:
    """Reject input that cannot be a statement at all."""
    if not isinstance(text, str):
        raise FatalParseError(
            f"Statement must be text, got {type(text).__name__}", "NON_TEXTUAL_INPUT"
        )
    if not text.strip():
        raise FatalParseError("Statement text is empty", "EMPTY_INPUT")
    if "\x00" in text:
        raise FatalParseError("Statement text contains NUL characters", "NON_TEXTUAL_INPUT")
    printable = sum(1 for ch in text if ch.isprintable() or ch in "\r\n\t")
    if printable / len(text) < MIN_PRINTABLE_RATIO:
        raise FatalParseError("Statement text is mostly non-printable", "NON_TEXTUAL_INPUT")


def parse_statement(
    text: str,
    rng_seed: Optional[int] = None,
    config: PipelineConfig = DEFAULT_CONFIG,
    valuation: Optional[ValuationSource] = None,
    as_of: Optional[datetime] = None,
) -> Tuple[Portfolio, Diagnostics]:
    """
    Parse statement text into a portfolio snapshot.

    This is the main entry point for programmatic use. Lines that cannot
    be interpreted are skipped and counted; only unreadable input fails.

    Args:
        text: Newline-delimited statement text.
        rng_seed: Seed for the simulated valuation; ignored when
            `valuation` is given.
        config: Pipeline settings.
        valuation: Source of current unit prices.
        as_of: Timestamp recorded as the portfolio's update time.

    Returns:
        Tuple of (Portfolio, Diagnostics).

    Raises:
        FatalParseError: If the input is empty or not text.
    """
    _check_input(text)

    labelled = list(LineClassifier().classify_text(text))
    diagnostics = Diagnostics(total_lines=len(labelled))

    investor = EntityExtractor(max_address_lines=config.max_address_lines).extract(labelled)
    statement_period = extract_statement_period(labelled)

    parser = TransactionLineParser(policy=FieldOrderPolicy(price_quantum=config.price_quantum))
    entries = []
    for line, role in labelled:
        parsed = None
        if role == LineRole.TRANSACTION_DATA:
            diagnostics.transaction_lines += 1
            parsed = parser.parse(line.text)
            if isinstance(parsed, ParseSkip):
                diagnostics.record_skip(parsed)
            elif isinstance(parsed, Transaction):
                diagnostics.parsed_transactions += 1
        elif role == LineRole.NOISE:
            diagnostics.noise_lines += 1
        entries.append((line, role, parsed))

    logger.info(
        f"Classified {diagnostics.total_lines} lines: "
        f"{diagnostics.transaction_lines} transaction lines, "
        f"{diagnostics.parsed_transactions} parsed, {diagnostics.skipped_lines} skipped"
    )

    aggregation = SchemeAggregator().aggregate(entries)
    diagnostics.orphaned_transactions = aggregation.orphaned_transactions
    diagnostics.excluded_holdings = len(aggregation.excluded)

    if valuation is None:
        valuation = SimulatedGrowthValuation.from_seed(rng_seed, config)
    holdings, summary = PortfolioSummarizer(valuation, config).summarize(aggregation.holdings)
    diagnostics.unvalued_holdings = len(aggregation.holdings) - len(holdings)

    portfolio = Portfolio(
        investor=investor,
        holdings=holdings,
        summary=summary,
        statement_period=statement_period,
        updated_at=as_of,
    )
    diagnostics.validation = PortfolioValidator(config).validate(portfolio, diagnostics)

    logger.info(
        f"Parsing complete: {len(holdings)} holdings, "
        f"valid={diagnostics.validation.is_valid}"
    )
    return portfolio, diagnostics


def parse_statement_pdf(
    pdf_path: str,
    password: Optional[str] = None,
    rng_seed: Optional[int] = None,
    config: PipelineConfig = DEFAULT_CONFIG,
    as_of: Optional[datetime] = None,
) -> Tuple[Portfolio, Diagnostics]:
    """
    Extract text from a statement PDF and parse it.

    Args:
        pdf_path: Path to the statement PDF.
        password: Optional password for encrypted PDFs.
        rng_seed: Seed for the simulated valuation.
        config: Pipeline settings.
        as_of: Timestamp recorded as the portfolio's update time.

    Returns:
        Tuple of (Portfolio, Diagnostics).
    """
    document = PDFExtractor(password=password).extract(pdf_path)
    logger.info(f"Extracted {len(document.get_all_lines())} lines from {document.total_pages} pages")
    return parse_statement(
        document.get_all_text(), rng_seed=rng_seed, config=config, as_of=as_of
    )


def export_to_json(
    portfolio: Portfolio,
    diagnostics: Diagnostics,
    output_path: Optional[str] = None,
) -> str:
    """
    Export a parsed portfolio and its diagnostics to JSON.

    Args:
        portfolio: Parsed portfolio.
        diagnostics: Diagnostics of the parse.
        output_path: Optional path to write JSON file.

    Returns:
        JSON string representation.
    """
    json_data = {
        "portfolio": portfolio.to_dict(),
        "diagnostics": diagnostics.to_dict(),
    }
    json_str = json.dumps(json_data, indent=2, ensure_ascii=False)

    if output_path:
        Path(output_path).write_text(json_str, encoding="utf-8")
        logger.info(f"Exported JSON to: {output_path}")

    return json_str


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Build a portfolio ledger from a Consolidated Account Statement",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s statement.pdf
  %(prog)s statement.txt -o portfolio.json --seed 42
  %(prog)s statement.pdf --password mypass -v
        """,
    )
    parser.add_argument(
        "statement_file",
        help="Path to the statement (.pdf, or extracted text)",
    )
    parser.add_argument(
        "-o", "--output",
        help="Output JSON file path (default: stdout)",
    )
    parser.add_argument(
        "-p", "--password",
        help="Password for encrypted PDF",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the simulated current prices",
    )
    parser.add_argument(
        "--growth-min",
        type=float,
        default=DEFAULT_CONFIG.growth_min,
        help="Lower bound of the simulated growth factor (default: %(default)s)",
    )
    parser.add_argument(
        "--growth-max",
        type=float,
        default=DEFAULT_CONFIG.growth_max,
        help="Upper bound of the simulated growth factor (default: %(default)s)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Only validate, don't output full JSON",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        config = PipelineConfig(growth_min=args.growth_min, growth_max=args.growth_max)
        as_of = datetime.now()

        if Path(args.statement_file).suffix.lower() == ".pdf":
            portfolio, diagnostics = parse_statement_pdf(
                args.statement_file,
                password=args.password,
                rng_seed=args.seed,
                config=config,
                as_of=as_of,
            )
        else:
            text = Path(args.statement_file).read_text(encoding="utf-8")
            portfolio, diagnostics = parse_statement(
                text, rng_seed=args.seed, config=config, as_of=as_of
            )

        if args.validate_only:
            validation = diagnostics.validation
            print(f"Validation: {'PASSED' if validation.is_valid else 'FAILED'}")
            if validation.errors:
                print("\nErrors:")
                for error in validation.errors:
                    print(f"  - {error}")
            if validation.warnings:
                print("\nWarnings:")
                for warning in validation.warnings:
                    print(f"  - {warning}")
            sys.exit(0 if validation.is_valid else 1)

        json_output = export_to_json(portfolio, diagnostics, args.output)

        if not args.output:
            print(json_output)

        if not args.quiet:
            print(
                f"\nParsed: {len(portfolio.holdings)} holdings, "
                f"{diagnostics.parsed_transactions} transactions, "
                f"{diagnostics.skipped_lines} lines skipped",
                file=sys.stderr,
            )
            if diagnostics.validation.warnings:
                print(
                    f"Validation warnings: {len(diagnostics.validation.warnings)}",
                    file=sys.stderr,
                )

    except (CASLedgerError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.exception("Failed to parse statement")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
