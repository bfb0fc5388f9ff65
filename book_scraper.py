#!/usr/bin/env python3
"""
Book Product Web Scraper

Fetches a bestseller listing page, extracts product listings (name, price,
rating, URL) with CSS selectors and saves them to a CSV file.
"""

import argparse
import csv
import json
import logging
import re
import sys
import warnings
from datetime import datetime
from pathlib import Path
from typing import List, Dict, NamedTuple, Optional, Union

# Suppress SSL warnings
warnings.filterwarnings('ignore', message='urllib3 v2 only supports OpenSSL')

import requests
from bs4 import BeautifulSoup


DEFAULT_TARGET_URL = "https://www.bookdepository.com/bestsellers"
DEFAULT_OUTPUT_PATH = "book_products.csv"
DEFAULT_USER_AGENT = "Java Web Scraper / Educational Purpose"
DEFAULT_ORIGIN = "https://www.bookdepository.com"

NOT_RATED = "Not rated"
RATING_PATTERN = re.compile(r"([0-5](\.[0-9])?)")

CSV_HEADER = "Name,Price,Rating,URL"


# ============================================================================
# Errors
# ============================================================================

class ScraperError(Exception):
    """Base class for errors raised by the scraper."""


class FetchError(ScraperError):
    """The target page could not be fetched (non-200 status or network failure)."""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ConfigError(ScraperError):
    """The configuration file could not be read or parsed."""


# ============================================================================
# Error Handling and Logging Framework
# ============================================================================

class _BelowWarningFilter(logging.Filter):
    def filter(self, record):
        return record.levelno < logging.WARNING


class ScraperLogger:
    """Centralized logging system for the scraper."""

    def __init__(self, log_dir: Optional[str] = "logs", verbose: bool = False):
        """Initialize logger with separate error and activity logs.

        Args:
            log_dir: Directory to store log files, or None for console only
            verbose: Show debug messages on the console
        """
        self.log_dir = Path(log_dir) if log_dir else None
        self.error_log_path = None

        self.logger = logging.getLogger("BookScraper")
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False
        self.close()

        console_formatter = logging.Formatter('%(message)s')

        # Progress and results go to stdout, problems to stderr
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        stdout_handler.addFilter(_BelowWarningFilter())
        stdout_handler.setFormatter(console_formatter)

        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.WARNING)
        stderr_handler.setFormatter(console_formatter)

        self.logger.addHandler(stdout_handler)
        self.logger.addHandler(stderr_handler)

        if self.log_dir is None:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)

        # File handler for detailed logs
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_handler = logging.FileHandler(
            self.log_dir / f"scraper_{timestamp}.log", encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        self.logger.addHandler(file_handler)

        # Error log CSV
        self.error_log_path = self.log_dir / f"errors_{timestamp}.csv"
        self._init_error_log()

    def _init_error_log(self):
        """Initialize the error log CSV file."""
        with open(self.error_log_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow([
                'timestamp', 'stage', 'error_type', 'error_message', 'url'
            ])

    def log_error(self, stage: str, error_type: str, error_message: str,
                  url: str = "", exc_info: bool = False):
        """Log an error to the console, the log file and the error CSV.

        Args:
            stage: Pipeline stage that failed ('fetch', 'extract', 'write', ...)
            error_type: Short error category, usually the exception class name
            error_message: Detailed error message
            url: URL being processed when the error happened
            exc_info: Attach the active exception's traceback
        """
        self.logger.error(error_message, exc_info=exc_info)

        if self.error_log_path is None:
            return

        with open(self.error_log_path, 'a', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow([
                datetime.now().isoformat(), stage, error_type, error_message, url
            ])

    def close(self):
        """Detach and close all handlers, releasing the log file."""
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

    def info(self, message: str):
        """Log an info message."""
        self.logger.info(message)

    def debug(self, message: str):
        """Log a debug message."""
        self.logger.debug(message)

    def warning(self, message: str):
        """Log a warning message."""
        self.logger.warning(message)


# ============================================================================
# Scraper Configuration
# ============================================================================

class ScraperConfig:
    """Target page, output path and selectors used for one scraping run.

    The defaults match the Book Depository bestseller page. Any of them can
    be overridden from a JSON file using these keys:

        targetUrl, outputPath, userAgent, connectTimeout,
        containerSelector, titleSelector, priceSelector, ratingSelector,
        originPrefix

    Keys starting with '_' are treated as comments.
    """

    KEY_MAP = {
        'targetUrl': 'target_url',
        'outputPath': 'output_path',
        'userAgent': 'user_agent',
        'connectTimeout': 'connect_timeout',
        'containerSelector': 'container_selector',
        'titleSelector': 'title_selector',
        'priceSelector': 'price_selector',
        'ratingSelector': 'rating_selector',
        'originPrefix': 'origin_prefix',
    }

    def __init__(self,
                 target_url: str = DEFAULT_TARGET_URL,
                 output_path: str = DEFAULT_OUTPUT_PATH,
                 user_agent: str = DEFAULT_USER_AGENT,
                 connect_timeout: float = 10,
                 container_selector: str = ".book-item",
                 title_selector: str = ".title a",
                 price_selector: str = ".price",
                 rating_selector: str = ".rating-wrap",
                 origin_prefix: str = DEFAULT_ORIGIN):
        self.target_url = target_url
        self.output_path = output_path
        self.user_agent = user_agent
        self.connect_timeout = connect_timeout
        self.container_selector = container_selector
        self.title_selector = title_selector
        self.price_selector = price_selector
        self.rating_selector = rating_selector
        self.origin_prefix = origin_prefix

    @classmethod
    def from_dict(cls, data: Dict, logger: Optional[ScraperLogger] = None) -> 'ScraperConfig':
        """Build a config from a mapping of camelCase keys.

        Args:
            data: Parsed JSON object
            logger: Logger instance for warnings about unknown keys

        Returns:
            ScraperConfig with defaults for every key not present
        """
        kwargs = {}
        for key, value in data.items():
            if key.startswith('_'):
                continue
            attr = cls.KEY_MAP.get(key)
            if attr is None:
                if logger:
                    logger.warning(f"Ignoring unknown config key: {key}")
                continue
            kwargs[attr] = value
        return cls(**kwargs)

    @classmethod
    def load(cls, config_file: str, logger: Optional[ScraperLogger] = None) -> 'ScraperConfig':
        """Load configuration from a JSON file.

        A missing file falls back to the defaults.

        Args:
            config_file: Path to JSON configuration file
            logger: Logger instance for debug output

        Returns:
            Loaded ScraperConfig

        Raises:
            ConfigError: If the file cannot be read or is not a JSON object
        """
        config_path = Path(config_file)
        if not config_path.exists():
            if logger:
                logger.info(f"Config file not found: {config_file}, using defaults")
            return cls()

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file {config_file}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {config_file}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_file} must contain a JSON object")

        if logger:
            logger.debug(f"Loaded configuration from {config_file}")
        return cls.from_dict(data, logger)


# ============================================================================
# Product Records
# ============================================================================

class ProductRecord(NamedTuple):
    """A single product listing scraped from the page."""

    name: str
    price: str
    rating: str
    url: str

    def __repr__(self):
        return (f"Product [name={self.name}, price={self.price}, "
                f"rating={self.rating}, url={self.url}]")

    def to_dict(self) -> Dict[str, str]:
        return dict(self._asdict())

    def to_csv_row(self) -> str:
        """Format the record as one CSV line (without the line terminator).

        Only the name has embedded quotes doubled; the URL is wrapped in
        quotes as-is.
        """
        escaped_name = self.name.replace('"', '""')
        return f'"{escaped_name}",{self.price},{self.rating},"{self.url}"'


class ExtractionResult:
    """Outcome of processing one candidate element: a record or a skip reason."""

    def __init__(self, record: Optional[ProductRecord] = None,
                 skip_reason: Optional[str] = None):
        self.record = record
        self.skip_reason = skip_reason

    @property
    def ok(self) -> bool:
        return self.record is not None

    def __repr__(self):
        if self.ok:
            return f"ExtractionResult(record={self.record!r})"
        return f"ExtractionResult(skip_reason={self.skip_reason!r})"


# ============================================================================
# Page Fetching
# ============================================================================

class PageFetcher:
    """Fetches the listing page over HTTP."""

    def __init__(self, session: requests.Session, config: ScraperConfig,
                 logger: ScraperLogger):
        """Initialize the fetcher.

        Args:
            session: Requests session for HTTP requests
            config: Scraper configuration (user agent, timeout)
            logger: Logger instance
        """
        self.session = session
        self.config = config
        self.logger = logger

    def fetch(self, url: str) -> bytes:
        """Fetch a page and return its HTML.

        The body is returned undecoded so BeautifulSoup can detect the
        encoding from the bytes and any <meta charset>.

        Args:
            url: URL of the page

        Returns:
            Raw response body

        Raises:
            FetchError: If the request fails or the status is not 200
        """
        self.logger.info(f"Fetching {url}")
        headers = {'User-Agent': self.config.user_agent}

        try:
            # Connect timeout only, the read may take as long as it needs
            response = self.session.get(
                url, headers=headers, timeout=(self.config.connect_timeout, None)
            )
        except requests.exceptions.RequestException as e:
            raise FetchError(f"Failed to fetch webpage {url}: {e}", url) from e

        if response.status_code != 200:
            raise FetchError(
                f"Failed to fetch webpage. Status code: {response.status_code}",
                url,
                status_code=response.status_code
            )

        self.logger.debug(f"Received {len(response.content)} bytes from {url}")
        return response.content


# ============================================================================
# Product Extraction
# ============================================================================

def _element_text(element) -> str:
    """Element text with runs of whitespace collapsed and the ends trimmed.

    Inline children are joined without a separator, so '$<b>9</b>.99'
    reads as '$9.99'.
    """
    return " ".join(element.get_text().split())


class ProductExtractor:
    """Extracts product records from a listing page."""

    def __init__(self, config: ScraperConfig, logger: ScraperLogger):
        """Initialize the product extractor.

        Args:
            config: Scraper configuration (selectors, origin prefix)
            logger: Logger instance
        """
        self.config = config
        self.logger = logger

    def extract(self, html: Union[str, bytes], base_url: str) -> List[ProductRecord]:
        """Extract all products from the page HTML.

        Args:
            html: Page HTML, as text or raw response bytes
            base_url: URL of the page, used when a product has no link

        Returns:
            Product records in document order
        """
        results = self.extract_results(html, base_url)
        return [result.record for result in results if result.ok]

    def extract_results(self, html: Union[str, bytes], base_url: str) -> List[ExtractionResult]:
        """Process every candidate element and report each outcome.

        Args:
            html: Page HTML, as text or raw response bytes
            base_url: URL of the page

        Returns:
            One ExtractionResult per candidate element, in document order
        """
        if not html:
            self.logger.debug("Empty page, nothing to extract")
            return []

        soup = BeautifulSoup(html, 'lxml')
        candidates = soup.select(self.config.container_selector)
        self.logger.debug(
            f"Found {len(candidates)} elements matching '{self.config.container_selector}'"
        )

        results = []
        for idx, element in enumerate(candidates, 1):
            try:
                result = self._extract_item(element, base_url)
            except Exception as e:
                self.logger.log_error(
                    "extract",
                    type(e).__name__,
                    f"Error while extracting product: {e}",
                    base_url
                )
                result = ExtractionResult(skip_reason=str(e))

            if not result.ok:
                self.logger.debug(f"Skipped element {idx}: {result.skip_reason}")
            results.append(result)

        extracted = sum(1 for result in results if result.ok)
        self.logger.info(
            f"Extracted {extracted} products ({len(results) - extracted} skipped)"
        )
        return results

    def _extract_item(self, element, base_url: str) -> ExtractionResult:
        """Build a record from one candidate element."""
        name_element = element.select_one(self.config.title_selector)
        if name_element is None:
            return ExtractionResult(skip_reason="missing title")

        price_element = element.select_one(self.config.price_selector)
        if price_element is None:
            return ExtractionResult(skip_reason="missing price")

        record = ProductRecord(
            name=_element_text(name_element),
            price=_element_text(price_element),
            rating=self._extract_rating(element),
            url=self._resolve_url(name_element.get('href'), base_url)
        )
        return ExtractionResult(record=record)

    def _resolve_url(self, href: Optional[str], base_url: str) -> str:
        """Make the product link absolute."""
        if href and href.startswith('/'):
            return self.config.origin_prefix + href
        if href:
            return href
        return base_url

    def _extract_rating(self, element) -> str:
        """Find the numeric rating, or the sentinel when there is none."""
        rating_element = element.select_one(self.config.rating_selector)
        if rating_element is None:
            return NOT_RATED

        match = RATING_PATTERN.search(_element_text(rating_element))
        if match:
            return match.group(1)
        return NOT_RATED


# ============================================================================
# CSV Output
# ============================================================================

class ProductCsvWriter:
    """Writes product records to a CSV file."""

    def __init__(self, logger: ScraperLogger):
        self.logger = logger

    def write_csv(self, records: List[ProductRecord], path: str) -> int:
        """Write the records to path, replacing any existing file.

        Args:
            records: Records to write, in output order
            path: Destination CSV file

        Returns:
            Number of data rows written

        Raises:
            OSError: If the file cannot be written
        """
        csv_path = Path(path)
        csv_path.parent.mkdir(parents=True, exist_ok=True)

        # Rows are formatted by ProductRecord.to_csv_row, not csv.writer,
        # so price and rating stay unquoted
        with open(csv_path, 'w', newline='', encoding='utf-8') as f:
            f.write(CSV_HEADER + "\n")
            for record in records:
                f.write(record.to_csv_row() + "\n")

        self.logger.debug(f"Wrote {len(records)} rows to {csv_path}")
        return len(records)


# ============================================================================
# Main Scraper Class
# ============================================================================

class BookScraper:
    """Main scraper orchestrator: fetch, extract, write."""

    def __init__(self, config: Optional[ScraperConfig] = None,
                 logger: Optional[ScraperLogger] = None,
                 session: Optional[requests.Session] = None):
        """Initialize the scraper.

        Args:
            config: Scraper configuration (defaults if omitted)
            logger: Logger instance (console only if omitted)
            session: HTTP session (a new requests.Session if omitted)
        """
        self.config = config or ScraperConfig()
        self.logger = logger or ScraperLogger(log_dir=None)
        self.session = session or requests.Session()

        self.fetcher = PageFetcher(self.session, self.config, self.logger)
        self.extractor = ProductExtractor(self.config, self.logger)
        self.writer = ProductCsvWriter(self.logger)

    def run(self) -> List[ProductRecord]:
        """Execute the scraping process.

        Returns:
            The records that were written

        Raises:
            FetchError: If the page cannot be fetched
            OSError: If the CSV file cannot be written
        """
        target_url = self.config.target_url
        csv_path = self.config.output_path

        html = self.fetcher.fetch(target_url)
        products = self.extractor.extract(html, target_url)
        self.writer.write_csv(products, csv_path)

        self.logger.info(
            f"Successfully scraped {len(products)} products and saved to {csv_path}"
        )
        for product in products:
            self.logger.info(repr(product))

        return products


# ============================================================================
# Main Entry Point
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Book Product Web Scraper - saves a listing page to CSV',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  # Scrape the Book Depository bestsellers into book_products.csv
  python book_scraper.py

  # Different page and output file
  python book_scraper.py --url https://www.bookdepository.com/category/2/Art --output art.csv

  # Custom selectors for another site
  python book_scraper.py --config scraper_config.example.json
        '''
    )

    parser.add_argument(
        '--url',
        type=str,
        default=None,
        metavar='URL',
        help=f'Page to scrape (default: {DEFAULT_TARGET_URL})'
    )

    parser.add_argument(
        '--output',
        type=str,
        default=None,
        metavar='FILE',
        help=f'CSV file to write (default: {DEFAULT_OUTPUT_PATH})'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        metavar='FILE',
        help='Path to JSON configuration file with selectors (default: None - uses defaults)'
    )

    parser.add_argument(
        '--log-dir',
        type=str,
        default='logs',
        metavar='DIR',
        help='Directory for log files (default: logs/)'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Show debug messages on the console'
    )

    return parser


def main(argv: Optional[List[str]] = None,
         session: Optional[requests.Session] = None) -> int:
    """Main entry point for the scraper.

    Returns:
        Process exit status: 0 on success, 1 on any failure
    """
    args = build_parser().parse_args(argv)

    # Console-only until the log directory is known to be usable
    logger = ScraperLogger(log_dir=None, verbose=args.verbose)

    try:
        logger = ScraperLogger(log_dir=args.log_dir, verbose=args.verbose)
        config = ScraperConfig.load(args.config, logger) if args.config else ScraperConfig()
        if args.url:
            config.target_url = args.url
        if args.output:
            config.output_path = args.output

        scraper = BookScraper(config, logger, session)
        scraper.run()
    except Exception as e:
        logger.log_error(
            "run",
            type(e).__name__,
            f"Error occurred during web scraping: {e}",
            getattr(e, 'url', ''),
            exc_info=True
        )
        return 1
    finally:
        logger.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
