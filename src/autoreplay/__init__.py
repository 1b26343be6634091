"""Records browser actions with stable locators and compiles them into Playwright tests."""

from __future__ import annotations

from .config import AutoReplaySettings, load_settings
from .exporter import export_playwright_test, is_spec_exportable
from .fingerprint import FingerprintExtractionError, extract_fingerprint, fingerprints_match
from .ir_reader import filter_by_spec_path, read_ir_file
from .ir_writer import IRWriter, create_ir_writer
from .locator_candidates import generate_candidates
from .locator_validator import filter_valid_candidates_by_action, validate_candidate, validate_candidates
from .log import build_logger
from .recorder import ActionRecorder, build_element_record
from .spec_markdown import load_markdown_spec, parse_markdown_spec

__version__ = "0.1.0"

__all__ = [
    "ActionRecorder",
    "AutoReplaySettings",
    "FingerprintExtractionError",
    "IRWriter",
    "build_element_record",
    "build_logger",
    "create_ir_writer",
    "export_playwright_test",
    "extract_fingerprint",
    "filter_by_spec_path",
    "filter_valid_candidates_by_action",
    "fingerprints_match",
    "generate_candidates",
    "is_spec_exportable",
    "load_settings",
    "load_markdown_spec",
    "parse_markdown_spec",
    "read_ir_file",
    "validate_candidate",
    "validate_candidates",
]
