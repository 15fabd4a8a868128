# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import base64
import binascii
import logging
import time
from pathlib import Path
from typing import Callable

from lightkube.core.exceptions import ApiError
from rich.status import Status

from trustchain.core.common import BaseStep, Result, ResultType, TrustChainException
from trustchain.core.config import (
    CA_CERT_FIELD,
    CA_GENERATOR_JOB,
    CA_GENERATOR_ROLE,
    CA_GENERATOR_ROLE_BINDING,
    CA_GENERATOR_ROLE_BINDING_TEMPLATE,
    CA_GENERATOR_ROLE_TEMPLATE,
    CA_GENERATOR_SERVICE_ACCOUNT,
    CERT_MANAGER_CA_SECRET_NAME,
    CERT_MANAGER_CRD,
    CERT_MANAGER_MANIFEST,
    CERT_MANAGER_NAMESPACE,
    CERTIFICATE_TEMPLATE,
    CLUSTER_ISSUER_TEMPLATE,
    ProvisioningConfig,
)
from trustchain.core.context import ProvisioningContext
from trustchain.core.k8s import ClusterResourceClient
from trustchain.core.polling import (
    DEFAULT_ATTEMPTS,
    DEFAULT_DELAY,
    PollTimeoutError,
    poll,
)
from trustchain.core.transient import TransientResourceSet, provisioned

LOG = logging.getLogger(__name__)

# =============================================================================
# Exceptions
# =============================================================================


class PrecursorMissingException(TrustChainException):
    """Raised when a step runs before the step it depends on."""


class GenerationFailedException(TrustChainException):
    """Raised when the CA generation job did not succeed."""


class MalformedSecretException(TrustChainException):
    """Raised when a certificate secret lacks the CA certificate."""


class IssuanceTimeoutException(TrustChainException):
    """Raised when the certificate secret never showed up."""


class AlreadyRequestedException(TrustChainException):
    """Raised when a certificate was already requested during this run."""


class SecretUnavailableException(TrustChainException):
    """Raised when there is no CA certificate to export."""


# =============================================================================
# Steps
# =============================================================================


class CertManagerStep(BaseStep):
    """Step operating on the cluster with the shared provisioning context."""

    def __init__(
        self,
        client: ClusterResourceClient,
        config: ProvisioningConfig,
        context: ProvisioningContext,
        name: str,
        description: str = "",
    ):
        super().__init__(name, description)
        self.client = client
        self.config = config
        self.context = context


class CheckCertManagerStep(CertManagerStep):
    """Detect cert-manager, deploying it when missing."""

    writes = ("cert_manager_installed",)

    def __init__(
        self,
        client: ClusterResourceClient,
        config: ProvisioningConfig,
        context: ProvisioningContext,
    ):
        super().__init__(
            client,
            config,
            context,
            "Check Cert Manager deployment",
            "Checking Cert Manager deployment",
        )

    @property
    def children(self) -> list[BaseStep]:
        """Deploy cert-manager when the check found it missing."""
        return [DeployCertManagerStep(self.client, self.config, self.context)]

    def is_skip(self, status: Status | None = None) -> Result:
        """Determines if the step should be skipped or not.

        :return: ResultType.SKIPPED if the Step should be skipped,
                ResultType.COMPLETED or ResultType.FAILED otherwise
        """
        # Only one CRD is checked, assuming cert-manager is either fully
        # installed or not at all.
        try:
            installed = self.client.namespace_exists(
                CERT_MANAGER_NAMESPACE
            ) and self.client.crd_exists(CERT_MANAGER_CRD)
        except ApiError as e:
            LOG.debug("Failed to detect cert-manager", exc_info=True)
            return Result(ResultType.FAILED, e)

        if installed:
            self.context.cert_manager_installed = True
            self.update_status(status, "already deployed")
            return Result(ResultType.SKIPPED, "Cert Manager already deployed")

        return Result(ResultType.COMPLETED)

    def run(self, status: Status | None = None) -> Result:
        """Report cert-manager as missing, deployment is done by the child."""
        self.update_status(status, "not deployed")
        return Result(ResultType.COMPLETED, "Cert Manager not deployed")


class DeployCertManagerStep(CertManagerStep):
    writes = ("cert_manager_installed",)

    def __init__(
        self,
        client: ClusterResourceClient,
        config: ProvisioningConfig,
        context: ProvisioningContext,
    ):
        super().__init__(
            client, config, context, "Deploy cert-manager", "Deploying cert-manager"
        )

    def run(self, status: Status | None = None) -> Result:
        """Apply the cert-manager install manifest."""
        manifest = self.config.resource_path(CERT_MANAGER_MANIFEST)
        if not manifest.exists():
            return Result(
                ResultType.FAILED,
                TrustChainException(
                    f"Cert Manager install manifest not found: {manifest}",
                    "Place the cert-manager release manifest under the "
                    "resources directory",
                ),
            )

        try:
            self.client.apply_manifest(manifest)
        except ApiError as e:
            LOG.debug("Failed to apply cert-manager manifest", exc_info=True)
            return Result(ResultType.FAILED, e)

        # Applying is idempotent, cert-manager is considered installed once the
        # manifest went through.
        self.context.cert_manager_installed = True
        return Result(ResultType.COMPLETED)


class EnsureCASecretStep(CertManagerStep):
    """Generate the CA key pair secret used by the cluster issuer."""

    reads = ("cert_manager_installed",)

    def __init__(
        self,
        client: ClusterResourceClient,
        config: ProvisioningConfig,
        context: ProvisioningContext,
    ):
        super().__init__(
            client,
            config,
            context,
            "Check Cert Manager CA certificate",
            "Checking Cert Manager CA certificate",
        )

    def transient_resources(self) -> TransientResourceSet:
        """Resources needed by the CA key pair generation job."""
        return TransientResourceSet(
            namespace=CERT_MANAGER_NAMESPACE,
            service_account=CA_GENERATOR_SERVICE_ACCOUNT,
            role=CA_GENERATOR_ROLE,
            role_template=self.config.bundled_path(CA_GENERATOR_ROLE_TEMPLATE),
            role_binding=CA_GENERATOR_ROLE_BINDING,
            role_binding_template=self.config.bundled_path(
                CA_GENERATOR_ROLE_BINDING_TEMPLATE
            ),
            job=CA_GENERATOR_JOB,
            image=self.config.generator_image,
        )

    def is_skip(self, status: Status | None = None) -> Result:
        """Determines if the step should be skipped or not.

        :return: ResultType.SKIPPED if the Step should be skipped,
                ResultType.COMPLETED or ResultType.FAILED otherwise
        """
        if not self.context.cert_manager_installed:
            return Result(
                ResultType.FAILED,
                PrecursorMissingException("Cert Manager must be installed before."),
            )

        try:
            secret = self.client.get_secret(
                CERT_MANAGER_CA_SECRET_NAME, CERT_MANAGER_NAMESPACE
            )
        except ApiError as e:
            LOG.debug("Failed to look up CA secret", exc_info=True)
            return Result(ResultType.FAILED, e)

        if secret is not None:
            self.update_status(status, "already exists")
            return Result(ResultType.SKIPPED, "CA certificate already exists")

        return Result(ResultType.COMPLETED)

    def run(self, status: Status | None = None) -> Result:
        """Run the CA key pair generation job."""
        self.update_status(status, "generating new one")
        resources = self.transient_resources()
        try:
            with provisioned(self.client, resources):
                succeeded = self.client.wait_job(resources.job, resources.namespace)
        except ApiError as e:
            LOG.debug("CA generation failed", exc_info=True)
            return Result(ResultType.FAILED, e)

        if not succeeded:
            return Result(
                ResultType.FAILED,
                GenerationFailedException(
                    "Failed to generate self-signed CA certificate: "
                    "generating job failed.",
                    f"Check the logs of job {resources.job} in namespace "
                    f"{resources.namespace} and re-run the provisioning",
                ),
            )

        return Result(ResultType.COMPLETED)


class EnsureClusterIssuerStep(CertManagerStep):
    def __init__(
        self,
        client: ClusterResourceClient,
        config: ProvisioningConfig,
        context: ProvisioningContext,
    ):
        super().__init__(
            client,
            config,
            context,
            "Set up certificates issuer",
            "Setting up certificates issuer",
        )

    def is_skip(self, status: Status | None = None) -> Result:
        """Determines if the step should be skipped or not.

        :return: ResultType.SKIPPED if the Step should be skipped,
                ResultType.COMPLETED or ResultType.FAILED otherwise
        """
        try:
            exists = self.client.cluster_issuer_exists(self.config.issuer_name)
        except ApiError as e:
            return Result(ResultType.FAILED, e)

        if exists:
            self.update_status(status, "already exists")
            return Result(ResultType.SKIPPED, "Cluster issuer already exists")

        return Result(ResultType.COMPLETED)

    def run(self, status: Status | None = None) -> Result:
        """Apply the cluster issuer backed by the CA secret."""
        try:
            self.client.apply_manifest(
                self.config.resource_path(CLUSTER_ISSUER_TEMPLATE),
                {
                    "issuer_name": self.config.issuer_name,
                    "ca_secret_name": CERT_MANAGER_CA_SECRET_NAME,
                },
            )
        except ApiError as e:
            LOG.debug("Failed to apply cluster issuer", exc_info=True)
            return Result(ResultType.FAILED, e)

        self.update_status(status, "done")
        return Result(ResultType.COMPLETED)


class RequestCertificateStep(CertManagerStep):
    # certificate_exists is only set by a later step, so the guard cannot
    # trigger with the default plan ordering.
    reads = ("certificate_exists",)

    def __init__(
        self,
        client: ClusterResourceClient,
        config: ProvisioningConfig,
        context: ProvisioningContext,
    ):
        super().__init__(
            client,
            config,
            context,
            "Request self-signed certificate",
            "Requesting self-signed certificate",
        )

    def run(self, status: Status | None = None) -> Result:
        """Request a certificate for the configured domain."""
        if self.context.certificate_exists:
            return Result(
                ResultType.FAILED,
                AlreadyRequestedException("Certificate already exists."),
            )

        if self.config.domain is None:
            return Result(
                ResultType.FAILED,
                TrustChainException(
                    "No domain configured for the certificate request.",
                    "Pass the domain the certificate is requested for",
                ),
            )

        try:
            self.client.create_certificate_request(
                self.config.resource_path(CERTIFICATE_TEMPLATE),
                {
                    "domain": self.config.domain,
                    "namespace": self.config.namespace,
                    "secret_name": self.config.secret_name,
                    "issuer_name": self.config.issuer_name,
                },
            )
        except ApiError as e:
            LOG.debug("Failed to request certificate", exc_info=True)
            return Result(ResultType.FAILED, e)

        self.update_status(status, "done")
        return Result(ResultType.COMPLETED)


class WaitForCertificateStep(CertManagerStep):
    """Wait for cert-manager to store the issued certificate."""

    writes = ("certificate_exists",)

    def __init__(
        self,
        client: ClusterResourceClient,
        config: ProvisioningConfig,
        context: ProvisioningContext,
        attempts: int = DEFAULT_ATTEMPTS,
        delay: float = DEFAULT_DELAY,
        sleep: Callable[[float], None] | None = None,
    ):
        super().__init__(
            client,
            config,
            context,
            "Wait for self-signed certificate",
            "Waiting for self-signed certificate",
        )
        self.attempts = attempts
        self.delay = delay
        self.sleep = sleep or time.sleep

    def _get_certificate_secret(self) -> dict[str, str] | None:
        secret = self.client.get_secret(self.config.secret_name, self.config.namespace)
        # A secret without the CA certificate will not fix itself
        if secret is not None and not secret.get(CA_CERT_FIELD):
            raise MalformedSecretException(
                f"Invalid secret {self.config.secret_name}: {CA_CERT_FIELD} is missing"
            )
        return secret

    def run(self, status: Status | None = None) -> Result:
        """Poll for the certificate secret."""
        try:
            poll(
                self._get_certificate_secret,
                attempts=self.attempts,
                delay=self.delay,
                sleep=self.sleep,
            )
        except PollTimeoutError:
            return Result(
                ResultType.FAILED,
                IssuanceTimeoutException(
                    "Waiting for certificate timeout error.",
                    "Check the certificate status with "
                    f"`kubectl describe certificate -n {self.config.namespace}`",
                ),
            )
        except (MalformedSecretException, ApiError) as e:
            return Result(ResultType.FAILED, e)

        self.context.certificate_exists = True
        self.update_status(status, "ready")
        return Result(ResultType.COMPLETED)


class ExportCACertificateStep(CertManagerStep):
    """Write the CA certificate into the user's home directory."""

    writes = ("ca_certificate_path",)

    def __init__(
        self,
        client: ClusterResourceClient,
        config: ProvisioningConfig,
        context: ProvisioningContext,
        home: Path | None = None,
    ):
        super().__init__(
            client,
            config,
            context,
            "Add local CA certificate into browser",
            "Exporting local CA certificate",
        )
        self.home = home

    def run(self, status: Status | None = None) -> Result:
        """Export the CA certificate of the issued secret."""
        try:
            secret = self.client.get_secret(
                self.config.secret_name, self.config.namespace
            )
        except ApiError as e:
            return Result(ResultType.FAILED, e)

        if not secret or not secret.get(CA_CERT_FIELD):
            return Result(
                ResultType.FAILED,
                SecretUnavailableException("Failed to get Cert Manager CA secret"),
            )

        try:
            ca_cert = base64.b64decode(secret[CA_CERT_FIELD], validate=True)
        except binascii.Error as e:
            return Result(
                ResultType.FAILED,
                SecretUnavailableException(f"Invalid {CA_CERT_FIELD} encoding: {e}"),
            )

        path = (self.home or Path.home()) / self.config.ca_file_name
        try:
            path.write_bytes(ca_cert)
        except OSError as e:
            LOG.debug(f"Failed to write {path}", exc_info=True)
            return Result(
                ResultType.FAILED,
                TrustChainException(
                    f"Failed to write CA certificate to {path}: {e}",
                    "Check the home directory exists and is writable",
                ),
            )
        LOG.debug(f"Wrote CA certificate to {path}")
        self.context.ca_certificate_path = path

        message = (
            "[MANUAL ACTION REQUIRED] Please add local CA certificate "
            f"into your browser: {path}"
        )
        self.update_status(status, "done")
        return Result(ResultType.COMPLETED, message)
