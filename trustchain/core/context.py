# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

from pathlib import Path

import pydantic


class ProvisioningContext(pydantic.BaseModel):
    """Facts discovered and shared by the steps of one provisioning run.

    A fresh context is created for every run and discarded at the end of it.
    """

    model_config = pydantic.ConfigDict(validate_assignment=True)

    cert_manager_installed: bool = False
    # Guards against requesting a second certificate within the same run
    certificate_exists: bool = False
    ca_certificate_path: Path | None = None
