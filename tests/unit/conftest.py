# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import json
from pathlib import Path
from unittest.mock import MagicMock, Mock

import httpx
import pytest
from lightkube import ApiError

from trustchain.core.config import ProvisioningConfig
from trustchain.core.context import ProvisioningContext


def make_api_error(code: int, message: str = "error") -> ApiError:
    return ApiError(
        Mock(),
        httpx.Response(
            status_code=code,
            content=json.dumps({"code": code, "message": message}),
        ),
    )


@pytest.fixture
def api_error():
    return make_api_error


@pytest.fixture
def basic_client():
    """Cluster client mock used by most test classes."""
    return Mock()


@pytest.fixture
def console():
    return MagicMock()


@pytest.fixture
def resources(tmp_path: Path) -> Path:
    """Resources root providing the cert-manager install manifest."""
    root = tmp_path / "resources"
    (root / "cert-manager").mkdir(parents=True)
    (root / "cert-manager" / "cert-manager.yml").write_text(
        "apiVersion: v1\nkind: Namespace\nmetadata:\n  name: cert-manager\n"
    )
    return root


@pytest.fixture
def config(resources: Path) -> ProvisioningConfig:
    return ProvisioningConfig(
        resources=resources, namespace="test-namespace", domain="example.com"
    )


@pytest.fixture
def context() -> ProvisioningContext:
    return ProvisioningContext()


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path
