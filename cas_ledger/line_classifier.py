"""
Line classifier for CAS statement text.

Every line of the statement is labelled as a scheme header, a folio
marker, transaction data or noise using semantic markers rather than
fixed column positions. The classifier holds no context between lines;
tracking of the current scheme and folio belongs to the aggregator.
"""

import logging
import re
from typing import Iterator, List, Optional, Tuple

from cas_ledger.models import LineRole, RawLine

logger = logging.getLogger(__name__)


class LinePatterns:
    """
    Regex patterns for recognizing statement line roles.

    Patterns are kept as strings so alternative statement layouts can
    extend them without touching the classification logic.
    """

    # A scheme header names a fund product and carries an identifier
    FUND_MARKERS = [
        r"(?i)\bfund\b",
        r"(?i)\bscheme\b",
        r"(?i)\bplan\b",
        r"(?i)\betf\b",
        r"(?i)\bfof\b",
    ]
    IDENTIFIER_MARKERS = [
        r"(?i)\bISIN\b",
    ]

    FOLIO_LABEL = r"(?i)^folio\b"

    # Transaction rows start with DD-Mon-YYYY
    DATE_PREFIX = (
        r"(?i)^(\d{1,2})-(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)-(\d{4})\b"
    )

    # 8,000.00  1,00,000.00  (50.000)  -12.5
    DECIMAL_NUMBER = r"\(?-?\d[\d,]*\.\d+\)?"

    FOLIO_VALUE = (
        r"(?i)^folio\s*(?:no\.?|number)?\s*:?\s*([A-Z0-9/ ]+?)(?:\s+(?:PAN|KYC)\b|$)"
    )
    # Scheme codes carry a digit ("B205-"); hyphenated brands ("SBI-") do not
    SCHEME_CODE_PREFIX = r"^(?=[A-Z]*\d)[A-Z0-9]{2,10}-"
    ISIN_VALUE = r"(?i)\bISIN\s*:?\s*([A-Z]{2}[A-Z0-9]{9}[0-9])?"
    SCHEME_TRAILERS = r"(?i)\s*(?:\(\s*advisor.*|registrar\s*:.*)$"
    FUND_HOUSE = r"(?i)^([A-Za-z&.'\s]+?\s+(?:Mutual\s+Fund|MF))$"


_fund_re = [re.compile(p) for p in LinePatterns.FUND_MARKERS]
_identifier_re = [re.compile(p) for p in LinePatterns.IDENTIFIER_MARKERS]
_folio_label_re = re.compile(LinePatterns.FOLIO_LABEL)
_date_prefix_re = re.compile(LinePatterns.DATE_PREFIX)
_number_re = re.compile(LinePatterns.DECIMAL_NUMBER)
_folio_value_re = re.compile(LinePatterns.FOLIO_VALUE)
_scheme_code_re = re.compile(LinePatterns.SCHEME_CODE_PREFIX)
_isin_value_re = re.compile(LinePatterns.ISIN_VALUE)
_scheme_trailer_re = re.compile(LinePatterns.SCHEME_TRAILERS)
_fund_house_re = re.compile(LinePatterns.FUND_HOUSE)


class LineClassifier:
    """
    Labels statement lines by role.

    Rules are applied in priority order and the first match wins:
    1. fund marker and identifier marker -> SCHEME_HEADER
    2. leading folio label -> FOLIO_MARKER
    3. leading date and at least one decimal number -> TRANSACTION_DATA
    4. anything else -> NOISE
    """

    def classify(self, line: RawLine) -> LineRole:
        """
        Classify a single line.

        Args:
            line: Line to classify.

        Returns:
            Role of the line.
        """
        text = line.text
        if not text:
            return LineRole.NOISE

        if self._matches_any(text, _fund_re) and self._matches_any(text, _identifier_re):
            return LineRole.SCHEME_HEADER

        if _folio_label_re.search(text):
            return LineRole.FOLIO_MARKER

        date_match = _date_prefix_re.match(text)
        if date_match and _number_re.search(text, date_match.end()):
            return LineRole.TRANSACTION_DATA

        return LineRole.NOISE

    def classify_text(self, text: str) -> Iterator[Tuple[RawLine, LineRole]]:
        """
        Lazily classify every line of a statement in source order.

        Args:
            text: Complete statement text.

        Yields:
            (RawLine, LineRole) pairs, one per source line.
        """
        for raw_line in split_lines(text):
            role = self.classify(raw_line)
            logger.debug(f"Line {raw_line.number}: {role.name}")
            yield raw_line, role

    def _matches_any(self, text: str, patterns: List[re.Pattern]) -> bool:
        """Check if text matches any of the given patterns."""
        return any(p.search(text) for p in patterns)


def split_lines(text: str) -> Iterator[RawLine]:
    """
    Split statement text into numbered lines with normalized whitespace.

    Only "\\n" ends a line. Form feeds and other separators left by PDF
    extraction are treated as whitespace, so line numbers match positions
    in the newline-delimited text.

    Args:
        text: Complete statement text.

    Yields:
        RawLine per source line, blank lines included.
    """
    if text.endswith("\n"):
        text = text[:-1]
    for number, line in enumerate(text.split("\n")):
        yield RawLine(number=number, text=" ".join(line.split()))


def classify_lines(text: str) -> Iterator[Tuple[RawLine, LineRole]]:
    """
    Convenience function to classify all lines of a statement.

    Args:
        text: Complete statement text.

    Returns:
        Iterator of (RawLine, LineRole) pairs in source order.
    """
    return LineClassifier().classify_text(text)


def extract_scheme_name(text: str) -> str:
    """
    Extract the display name from a scheme header line.

    The name is the text before the ISIN marker with any leading scheme
    code ("B205-") removed. When nothing precedes the marker, the text
    after the ISIN value is used instead.

    Args:
        text: Scheme header line.

    Returns:
        Scheme display name.
    """
    isin_match = _isin_value_re.search(text)
    if not isin_match:
        return _clean_scheme_name(text)

    name = _clean_scheme_name(text[:isin_match.start()])
    if not name:
        name = _clean_scheme_name(text[isin_match.end():])
    return name


def _clean_scheme_name(fragment: str) -> str:
    cleaned = " ".join(fragment.split())
    cleaned = _scheme_trailer_re.sub("", cleaned)
    cleaned = _scheme_code_re.sub("", cleaned)
    cleaned = re.sub(r"[\s\-:(]+$", "", cleaned)
    cleaned = re.sub(r"^[\s\-:)]+", "", cleaned)
    return cleaned.strip()


def extract_folio(text: str) -> Optional[str]:
    """
    Extract the folio number from a folio marker line.

    The folio is truncated at the first "/" so that "12345/0" and
    "12345 / 67" both normalize to "12345".

    Args:
        text: Folio marker line.

    Returns:
        Folio number or None if the label has no value.
    """
    match = _folio_value_re.search(text)
    if not match:
        return None
    folio = match.group(1).replace(" ", "")
    folio = folio.split("/", 1)[0]
    return folio or None


def match_fund_house(text: str) -> Optional[str]:
    """
    Recognize an asset management company line such as "SBI Mutual Fund".

    Args:
        text: Statement line.

    Returns:
        Fund house name or None.
    """
    match = _fund_house_re.match(text.strip())
    if match:
        return " ".join(match.group(1).split())
    return None
