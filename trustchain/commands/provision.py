# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import logging
from pathlib import Path

import click
import pydantic
from rich.console import Console

from trustchain.core.common import StepFailedException, TrustChainException
from trustchain.core.config import BUNDLED_RESOURCES, ProvisioningConfig
from trustchain.core.k8s import KubeHelper, get_kube_client
from trustchain.workflow import ProvisioningWorkflow, export_ca_certificate

LOG = logging.getLogger(__name__)
console = Console()

click_option_kubeconfig = click.option(
    "--kubeconfig",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Kubeconfig file, defaults to KUBECONFIG or ~/.kube/config.",
)
click_option_namespace = click.option(
    "-n",
    "--namespace",
    required=True,
    help="Namespace of the application receiving the certificate.",
)
click_option_secret_name = click.option(
    "--secret-name",
    default="app-tls",
    show_default=True,
    help="Secret holding the issued certificate.",
)
click_option_ca_file_name = click.option(
    "--ca-file-name",
    default="trustchainCA.crt",
    show_default=True,
    help="Name of the CA certificate file written in the home directory.",
)


def build_config(**kwargs) -> ProvisioningConfig:
    try:
        return ProvisioningConfig(**kwargs)
    except pydantic.ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e


def build_client(kubeconfig: Path | None, namespace: str) -> KubeHelper:
    try:
        return KubeHelper(get_kube_client(kubeconfig, namespace))
    except TrustChainException as e:
        raise click.ClickException(str(e)) from e


def _failure(e: StepFailedException) -> click.ClickException:
    LOG.debug("Provisioning failed", exc_info=True)
    message = str(e)
    if e.hint:
        message = f"{message}\n{e.hint}"
    return click.ClickException(message)


@click.command()
@click_option_kubeconfig
@click_option_namespace
@click.option(
    "-d",
    "--domain",
    required=True,
    help="Domain name the certificate is requested for.",
)
@click.option(
    "-r",
    "--resources",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=BUNDLED_RESOURCES,
    help="Directory containing the cert-manager manifests.",
)
@click_option_secret_name
@click.option(
    "--issuer-name",
    default="trustchain-cluster-issuer",
    show_default=True,
    help="Name of the cluster issuer signing the certificate.",
)
@click_option_ca_file_name
def provision(
    kubeconfig: Path | None,
    namespace: str,
    domain: str,
    resources: Path,
    secret_name: str,
    issuer_name: str,
    ca_file_name: str,
) -> None:
    """Provision a self-signed certificate using cert-manager.

    Deploys cert-manager if needed, generates a CA once, requests a
    certificate for DOMAIN and exports the CA certificate to the home
    directory.
    """
    config = build_config(
        resources=resources,
        namespace=namespace,
        domain=domain,
        secret_name=secret_name,
        issuer_name=issuer_name,
        ca_file_name=ca_file_name,
    )
    client = build_client(kubeconfig, namespace)
    try:
        ProvisioningWorkflow(config, client).run(console)
    except StepFailedException as e:
        raise _failure(e) from e
    click.echo("Certificate provisioned.")


@click.command("export-ca")
@click_option_kubeconfig
@click_option_namespace
@click_option_secret_name
@click_option_ca_file_name
def export_ca(
    kubeconfig: Path | None, namespace: str, secret_name: str, ca_file_name: str
) -> None:
    """Export the CA certificate of an issued certificate."""
    config = build_config(
        namespace=namespace,
        secret_name=secret_name,
        ca_file_name=ca_file_name,
    )
    client = build_client(kubeconfig, namespace)
    try:
        export_ca_certificate(config, client, console)
    except StepFailedException as e:
        raise _failure(e) from e
