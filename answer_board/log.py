"""Logging configuration for the app."""

import logging
import sys


def setup_logging(debug: bool = False) -> None:
    """Configure root logging to stdout; DEBUG when ``debug`` is set, else INFO."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # gspread/google-auth are chatty at DEBUG
    for noisy in ("urllib3", "google.auth", "gspread"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
