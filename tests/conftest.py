# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures: a sample APY workspace and a controllable clock."""

from pathlib import Path

import pytest

from apy_intel.cache import ImportListCache, ModuleIndexCache
from apy_intel.config import Config
from apy_intel.service import LanguageService

from samples import HANDLER_SOURCE, INVOICES_SOURCE, UTILS_SOURCE, FakeClock


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Workspace with src/libs and src/tables.

    src/libs/
        utils.py
        _private.py            (hidden: leading underscore)
        not-valid.py           (hidden: not an identifier)
        README.md              (hidden: no module extension)
        billing/
            __init__.py
            invoices.apy
            __pycache__/
    src/tables/
        Orders.yaml
    """
    libs = tmp_path / "src" / "libs"
    billing = libs / "billing"
    (billing / "__pycache__").mkdir(parents=True)
    (libs / "utils.py").write_text(UTILS_SOURCE)
    (libs / "_private.py").write_text("SECRET = 1\n")
    (libs / "not-valid.py").write_text("X = 1\n")
    (libs / "README.md").write_text("# libs\n")
    (billing / "__init__.py").write_text("")
    (billing / "invoices.apy").write_text(INVOICES_SOURCE)

    tables = tmp_path / "src" / "tables"
    tables.mkdir(parents=True)
    (tables / "Orders.yaml").write_text("name: Orders\nfields: []\n")

    (tmp_path / "handler.apy").write_text(HANDLER_SOURCE)
    return tmp_path


@pytest.fixture
def config(workspace: Path) -> Config:
    return Config(workspace_root=workspace)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(config: Config, clock: FakeClock) -> LanguageService:
    return LanguageService(
        config,
        module_cache=ModuleIndexCache(ttl_ms=config.module_index_ttl_ms, clock=clock),
        import_cache=ImportListCache(ttl_ms=config.import_list_ttl_ms, clock=clock),
    )
