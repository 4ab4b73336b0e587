"""Streamlit entry point for the Mariposa trading dashboard.

Run with ``streamlit run app.py``; the pages live inside ``mariposa_app``.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable

import streamlit as st

PROJECT_ROOT = Path(__file__).resolve().parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from mariposa_app.utils.error_handling import install_global_exception_handlers
from mariposa_app.utils.log import reset_logs_on_start
from mariposa_app.utils.ui import get_script_run_ctx

_PAGES_DIR = PROJECT_ROOT / "mariposa_app" / "pages"


def _iter_page_files() -> Iterable[Path]:
    if not _PAGES_DIR.exists():
        return []
    return sorted(path for path in _PAGES_DIR.glob("*.py") if path.is_file())


def _resolve_page_path(script_path: Path) -> str:
    """Return a path usable by ``st.Page`` relative to the running script."""

    resolved = script_path.resolve()
    ctx = get_script_run_ctx()
    if ctx is not None:
        main_dir = Path(ctx.main_script_path).resolve().parent
        try:
            return str(resolved.relative_to(main_dir))
        except ValueError:
            pass

    try:
        return str(resolved.relative_to(PROJECT_ROOT))
    except ValueError:
        return str(resolved)


def _build_navigation() -> list[st.Page]:
    pages: list[st.Page] = [
        st.Page(
            _resolve_page_path(PROJECT_ROOT / "mariposa_app" / "app.py"),
            title="Dashboard",
            icon="🦋",
            default=True,
        )
    ]
    for page_path in _iter_page_files():
        pages.append(st.Page(_resolve_page_path(page_path)))
    return pages


def main() -> None:
    reset_logs_on_start()
    install_global_exception_handlers()
    current_page = st.navigation(_build_navigation())
    if current_page is not None:
        current_page.run()


if __name__ == "__main__":
    main()
