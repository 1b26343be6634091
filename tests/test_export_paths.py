from pathlib import Path

from autoreplay.config import AutoReplaySettings
from autoreplay.export_paths import (
    ensure_export_dir,
    generate_export_file_name,
    generate_test_function_name,
    get_export_path,
    get_relative_export_path,
    sanitize_module_name,
)


def test_export_file_name_from_relative_spec_path(tmp_path: Path) -> None:
    assert generate_export_file_name("specs/saucedemo-01-login.md", tmp_path) == "test_specs_saucedemo_01_login.py"
    assert generate_export_file_name("specs/test.md", tmp_path) == "test_specs_test.py"


def test_export_file_name_from_absolute_spec_path(tmp_path: Path) -> None:
    inside = tmp_path / "specs" / "checkout.md"
    assert generate_export_file_name(str(inside), tmp_path) == "test_specs_checkout.py"
    assert generate_export_file_name("/somewhere/else/cart.md", tmp_path) == "test_cart.py"


def test_export_file_name_neutralizes_traversal(tmp_path: Path) -> None:
    name = generate_export_file_name("../../etc/passwd.md", tmp_path)
    assert name == "test_etc_passwd.py"
    assert "/" not in name and ".." not in name


def test_module_name_is_truncated() -> None:
    assert len(sanitize_module_name("a" * 500)) == 200
    assert sanitize_module_name("--") == ""


def test_test_function_name_uses_spec_stem() -> None:
    assert generate_test_function_name("specs/Saucedemo-01-Login.md") == "test_saucedemo_01_login"
    assert generate_test_function_name("specs\\windows\\cart.md") == "test_cart"
    assert generate_test_function_name("---.md") == "test_exported"


def test_export_paths_respect_settings(tmp_path: Path) -> None:
    assert get_export_path(tmp_path, "specs/test.md") == tmp_path / "tests" / "autoreplay" / "test_specs_test.py"
    assert get_relative_export_path(tmp_path, "specs/test.md") == "tests/autoreplay/test_specs_test.py"

    settings = AutoReplaySettings(export_dir="generated/e2e")
    assert get_relative_export_path(tmp_path, "specs/test.md", settings) == "generated/e2e/test_specs_test.py"
    assert ensure_export_dir(tmp_path, settings).is_dir()
