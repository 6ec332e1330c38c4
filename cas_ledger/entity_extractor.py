"""
Investor identity extraction from the statement header.

Only lines before the first scheme header are scanned. Fields are
loosely positioned in real statements, so each one is looked for
independently and anything not found is simply left empty.
"""

import logging
import re
from itertools import takewhile
from typing import Iterable, List, Optional, Tuple

from cas_ledger.config import DEFAULT_CONFIG
from cas_ledger.models import InvestorInfo, LineRole, RawLine, StatementPeriod
from cas_ledger.transactions_parser import parse_date_token

logger = logging.getLogger(__name__)


class EntityExtractor:
    """
    Extracts investor details from header-region lines.

    The name is assumed to sit on the line right after the email line,
    followed by the postal address.
    """

    EMAIL_PATTERN = re.compile(r"\b([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})\b")
    MOBILE_PATTERN = re.compile(
        r"(?i)\b(?:mobile|mob|phone|tel)\s*(?:no\.?|number)?\s*:?\s*(\+?\d[\d\s-]{8,16}\d)"
    )
    PAN_PATTERN = re.compile(r"\b([A-Z]{5}[0-9]{4}[A-Z])\b")
    NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z.'\s]{1,78}[A-Za-z.]$")
    STATEMENT_PERIOD_PATTERN = re.compile(
        r"(?i)(\d{1,2}-[A-Za-z]{3}-\d{4})\s*(?:to|-)\s*(\d{1,2}-[A-Za-z]{3}-\d{4})"
    )
    NOT_A_NAME = re.compile(
        r"(?i)(statement|consolidated|portfolio|mutual\s*fund|investor|period|summary|email|mobile)"
    )
    ADDRESS_STOP = re.compile(r"(?i)^(?:mobile|mob|phone|tel|email|pan|kyc|folio|nominee)\b")

    def __init__(self, max_address_lines: int = DEFAULT_CONFIG.max_address_lines):
        """
        Initialize the extractor.

        Args:
            max_address_lines: Maximum number of lines joined into the address.
        """
        self.max_address_lines = max_address_lines

    def extract(self, labelled: Iterable[Tuple[RawLine, LineRole]]) -> InvestorInfo:
        """
        Extract investor information from a classified statement.

        Args:
            labelled: (RawLine, LineRole) pairs in source order.

        Returns:
            InvestorInfo; fields that were not found are None.
        """
        lines = [line.text for line in header_region(labelled) if line.text]
        text = " ".join(lines)

        email = None
        email_index = None
        for i, line in enumerate(lines):
            email_match = self.EMAIL_PATTERN.search(line)
            if email_match:
                email = email_match.group(1)
                email_index = i
                break

        # Per line: the greedy digit run would otherwise spill into the next line
        mobile = None
        for line in lines:
            mobile_match = self.MOBILE_PATTERN.search(line)
            if mobile_match:
                mobile = _normalize_mobile(mobile_match.group(1))
                break

        pan = None
        pan_match = self.PAN_PATTERN.search(text)
        if pan_match:
            pan = pan_match.group(1)

        name = None
        address = None
        if email_index is not None and email_index + 1 < len(lines):
            candidate = lines[email_index + 1]
            if self._looks_like_name(candidate):
                name = candidate
                address = self._collect_address(lines[email_index + 2:])

        investor = InvestorInfo(
            name=name,
            email=email,
            mobile=mobile,
            pan=pan,
            address=address,
        )
        logger.info(
            f"Investor fields found: "
            f"{[k for k, v in investor.to_dict().items() if v]}"
        )
        return investor

    def _looks_like_name(self, line: str) -> bool:
        return bool(self.NAME_PATTERN.match(line)) and not self.NOT_A_NAME.search(line)

    def _collect_address(self, lines: List[str]) -> Optional[str]:
        """Join the lines that follow the name until a labelled field appears."""
        parts = []
        for line in lines:
            if len(parts) >= self.max_address_lines:
                break
            if self.ADDRESS_STOP.search(line) or self.EMAIL_PATTERN.search(line):
                break
            if self.PAN_PATTERN.search(line) or self.STATEMENT_PERIOD_PATTERN.search(line):
                break
            parts.append(line.strip(" ,"))
        return ", ".join(p for p in parts if p) or None


def header_region(labelled: Iterable[Tuple[RawLine, LineRole]]) -> List[RawLine]:
    """
    Lines that precede the first scheme header.

    Args:
        labelled: (RawLine, LineRole) pairs in source order.

    Returns:
        Header-region lines in source order.
    """
    return [
        line
        for line, _ in takewhile(lambda pair: pair[1] != LineRole.SCHEME_HEADER, labelled)
    ]


def _normalize_mobile(raw: str) -> Optional[str]:
    digits = re.sub(r"\D", "", raw)
    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    elif len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]
    return digits or None


def extract_investor(labelled: Iterable[Tuple[RawLine, LineRole]]) -> InvestorInfo:
    """
    Convenience function to extract investor information.

    Args:
        labelled: (RawLine, LineRole) pairs in source order.

    Returns:
        InvestorInfo with any unfound field left empty.
    """
    return EntityExtractor().extract(labelled)


def extract_statement_period(
    labelled: Iterable[Tuple[RawLine, LineRole]],
) -> Optional[StatementPeriod]:
    """
    Find the "DD-Mon-YYYY To DD-Mon-YYYY" range in the header region.

    Args:
        labelled: (RawLine, LineRole) pairs in source order.

    Returns:
        StatementPeriod or None if the header states no valid range.
    """
    for line in header_region(labelled):
        match = EntityExtractor.STATEMENT_PERIOD_PATTERN.search(line.text)
        if not match:
            continue
        start = parse_date_token(match.group(1))
        end = parse_date_token(match.group(2))
        if start and end and start <= end:
            return StatementPeriod(start=start, end=end)
    return None
