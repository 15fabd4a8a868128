# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import logging
from pathlib import Path

from rich.console import Console

from trustchain.core.common import BaseStep, ResultType, run_plan
from trustchain.core.config import ProvisioningConfig
from trustchain.core.context import ProvisioningContext
from trustchain.core.k8s import ClusterResourceClient
from trustchain.steps.cert_manager import (
    CheckCertManagerStep,
    EnsureCASecretStep,
    EnsureClusterIssuerStep,
    ExportCACertificateStep,
    RequestCertificateStep,
    WaitForCertificateStep,
)

LOG = logging.getLogger(__name__)


class ProvisioningWorkflow:
    """Provision a self-signed certificate for an application.

    The steps run strictly in order, each one relying on the previous one
    having completed:

        detect cert-manager -> CA secret -> cluster issuer
            -> certificate request -> wait for issuance -> export CA

    Checking the cluster before acting makes the workflow safe to re-run after
    a failure. It assumes a single operator, concurrent runs against the same
    cluster are not coordinated.
    """

    def __init__(
        self,
        config: ProvisioningConfig,
        client: ClusterResourceClient,
        home: Path | None = None,
    ):
        self.config = config
        self.client = client
        self.home = home

    def get_plan(self, context: ProvisioningContext) -> list[BaseStep]:
        return [
            CheckCertManagerStep(self.client, self.config, context),
            EnsureCASecretStep(self.client, self.config, context),
            EnsureClusterIssuerStep(self.client, self.config, context),
            RequestCertificateStep(self.client, self.config, context),
            WaitForCertificateStep(self.client, self.config, context),
            ExportCACertificateStep(self.client, self.config, context, self.home),
        ]

    def run(self, console: Console) -> ProvisioningContext:
        """Run the provisioning plan with a fresh context.

        :raises StepFailedException: on the first failing step
        :return: the context as left by the last step
        """
        context = ProvisioningContext()
        results = run_plan(self.get_plan(context), console)
        LOG.debug(
            "Provisioning finished: "
            + ", ".join(f"{name}={r.result_type.name}" for name, r in results.items())
        )
        export = results.get(ExportCACertificateStep.__name__)
        if export and export.result_type == ResultType.COMPLETED:
            console.print(export.message)
        return context


def export_ca_certificate(
    config: ProvisioningConfig,
    client: ClusterResourceClient,
    console: Console,
    home: Path | None = None,
) -> ProvisioningContext:
    """Export the CA certificate of an already issued certificate."""
    context = ProvisioningContext()
    step = ExportCACertificateStep(client, config, context, home)
    results = run_plan([step], console)
    console.print(results[ExportCACertificateStep.__name__].message)
    return context
