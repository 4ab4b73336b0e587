from __future__ import annotations

import os
import stat

import pytest

from mariposa_app.utils import security

posix_only = pytest.mark.skipif(os.name != "posix", reason="permissions enforcement only relevant on POSIX")


@posix_only
def test_secure_file_strips_group_and_other_bits(tmp_path):
    token_store = tmp_path / "storage.json"
    token_store.write_text('{"token": "abc"}', encoding="utf-8")
    os.chmod(token_store, 0o644)

    assert security.permissions_too_permissive(token_store) is True
    security.secure_file(token_store)

    assert stat.S_IMODE(token_store.stat().st_mode) == security.DEFAULT_SECURE_MODE
    assert security.permissions_too_permissive(token_store) is False


@posix_only
def test_ensure_restricted_permissions_reports_changes(tmp_path):
    log_file = tmp_path / "app.log"
    log_file.write_text("", encoding="utf-8")
    os.chmod(log_file, 0o600)

    assert security.ensure_restricted_permissions(log_file) is False
    os.chmod(log_file, 0o660)
    assert security.ensure_restricted_permissions(log_file) is True


def test_missing_files_are_left_alone(tmp_path):
    missing = tmp_path / "absent.json"

    assert security.permissions_too_permissive(missing) is False
    assert security.ensure_restricted_permissions(missing) is False
    security.secure_file(missing)
    assert not missing.exists()
