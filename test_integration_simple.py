#!/usr/bin/env python3
"""
Simplified integration tests for the book scraper.
Runs the whole fetch -> extract -> write pipeline against canned responses.
"""

import logging
import os
import sys
import tempfile
from pathlib import Path

import requests

from book_scraper import BookScraper, ScraperConfig, ScraperLogger, FetchError, main
from test_scraper import StubResponse, StubSession, book_item, page, real_response


LISTING_HTML = page(
    book_item(
        title='Bob "Builder"',
        href="/Bob-Builder/9780000000001",
        price="$9.99",
        rating="4.5 stars"
    ),
    book_item(title="Missing Price", href="/Missing-Price/9780000000002"),
)


def test_imports():
    """Test that all modules can be imported without errors."""
    print("=" * 80)
    print("Integration Test: Module Imports")
    print("=" * 80)

    from book_scraper import (
        ScraperLogger,
        ScraperConfig,
        PageFetcher,
        ProductExtractor,
        ProductCsvWriter,
        BookScraper,
        ExtractionResult,
    )
    print("✅ All modules imported successfully")


def test_end_to_end():
    """Two book items, one missing a price: header plus one data row."""
    print("\n" + "=" * 80)
    print("Integration Test: End to End")
    print("=" * 80)

    with tempfile.TemporaryDirectory() as tmp:
        csv_path = Path(tmp) / "book_products.csv"
        config = ScraperConfig(output_path=str(csv_path))
        session = StubSession(StubResponse(200, LISTING_HTML))

        scraper = BookScraper(config, ScraperLogger(log_dir=None), session)
        products = scraper.run()

        assert len(products) == 1
        assert session.calls[0][0] == "https://www.bookdepository.com/bestsellers"

        lines = csv_path.read_text(encoding='utf-8').splitlines()
        assert lines == [
            "Name,Price,Rating,URL",
            '"Bob ""Builder""",$9.99,4.5,'
            '"https://www.bookdepository.com/Bob-Builder/9780000000001"',
        ]

    print("✅ Pipeline wrote one row")


def test_run_reports_results(capsys):
    """The success line and each record are printed to stdout."""
    with tempfile.TemporaryDirectory() as tmp:
        csv_path = Path(tmp) / "out.csv"
        config = ScraperConfig(output_path=str(csv_path))
        session = StubSession(StubResponse(200, LISTING_HTML))

        BookScraper(config, ScraperLogger(log_dir=None), session).run()

    out = capsys.readouterr().out
    assert f"Successfully scraped 1 products and saved to {csv_path}" in out
    assert 'Product [name=Bob "Builder", price=$9.99, rating=4.5,' in out


def test_not_found_aborts_before_writing():
    """A 404 stops the run before extraction and before any file is written."""
    print("\n" + "=" * 80)
    print("Integration Test: Non-200 Response")
    print("=" * 80)

    with tempfile.TemporaryDirectory() as tmp:
        csv_path = Path(tmp) / "book_products.csv"
        config = ScraperConfig(output_path=str(csv_path))
        session = StubSession(StubResponse(404, LISTING_HTML))
        scraper = BookScraper(config, ScraperLogger(log_dir=None), session)

        extracted = []
        scraper.extractor.extract = lambda html, base_url: extracted.append(html) or []

        try:
            scraper.run()
        except FetchError as e:
            assert e.status_code == 404
        else:
            raise AssertionError("expected FetchError")

        assert extracted == []
        assert not csv_path.exists()

    print("✅ Run aborted on 404")


def test_main_exit_status(capsys):
    """main() returns 1 and reports the error on failure, 0 on success."""
    with tempfile.TemporaryDirectory() as tmp:
        csv_path = Path(tmp) / "books.csv"
        log_dir = Path(tmp) / "logs"
        argv = ['--output', str(csv_path), '--log-dir', str(log_dir)]

        status = main(argv, session=StubSession(StubResponse(500, "")))
        err = capsys.readouterr().err
        assert status == 1
        assert "Error occurred during web scraping: Failed to fetch webpage. Status code: 500" in err
        assert "Traceback" in err
        assert not csv_path.exists()

        error_csv = next(log_dir.glob("errors_*.csv"))
        assert "FetchError" in error_csv.read_text(encoding='utf-8')

        status = main(argv + ['--url', 'https://example.com/list'],
                      session=StubSession(StubResponse(200, LISTING_HTML)))
        assert status == 0
        assert csv_path.read_text(encoding='utf-8').count("\n") == 2

        # main() closes its log file on the way out
        assert logging.getLogger("BookScraper").handlers == []


def test_main_network_error():
    """Connection failures are fatal and reported."""
    error = requests.exceptions.ConnectionError("name resolution failed")
    with tempfile.TemporaryDirectory() as tmp:
        status = main(
            ['--output', os.path.join(tmp, 'x.csv'), '--log-dir', os.path.join(tmp, 'logs')],
            session=StubSession(error=error)
        )
        assert status == 1


def test_main_unusable_log_dir(capsys):
    """A log directory that cannot be created is reported like any other failure."""
    with tempfile.TemporaryDirectory() as tmp:
        blocker = Path(tmp) / "logs"
        blocker.write_text("not a directory", encoding='utf-8')
        csv_path = Path(tmp) / "books.csv"

        status = main(
            ['--output', str(csv_path), '--log-dir', str(blocker)],
            session=StubSession(StubResponse(200, LISTING_HTML))
        )

        assert status == 1
        assert "Error occurred during web scraping" in capsys.readouterr().err
        assert not csv_path.exists()


def test_utf8_page_end_to_end():
    """A UTF-8 page with no charset header ends up as UTF-8 in the CSV."""
    print("\n" + "=" * 80)
    print("Integration Test: UTF-8 Page")
    print("=" * 80)

    html = page(
        book_item(title="Café <em>Society</em>", href="/cafe", price="£<b>9</b>.99",
                  rating="<span>4</span>.5 — très bien"),
        book_item(title="Über Alles", href="/uber"),
    )

    with tempfile.TemporaryDirectory() as tmp:
        csv_path = Path(tmp) / "book_products.csv"
        config = ScraperConfig(output_path=str(csv_path))
        session = StubSession(real_response(html.encode('utf-8')))

        logger = ScraperLogger(log_dir=None)
        products = BookScraper(config, logger, session).run()
        logger.close()

        assert len(products) == 1
        assert csv_path.read_bytes() == (
            "Name,Price,Rating,URL\n"
            '"Café Society",£9.99,4.5,"https://www.bookdepository.com/cafe"\n'
        ).encode('utf-8')

    print("✅ Non-ASCII text preserved")


def main_runner():
    """Run the tests that don't need pytest fixtures."""
    test_imports()
    test_end_to_end()
    test_not_found_aborts_before_writing()
    test_main_network_error()
    test_utf8_page_end_to_end()

    print("\n" + "=" * 80)
    print("✅ All integration tests passed")
    print("=" * 80)
    return 0


if __name__ == "__main__":
    sys.exit(main_runner())
