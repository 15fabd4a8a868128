# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

from pathlib import Path

import pydantic

CERT_MANAGER_NAMESPACE = "cert-manager"
CERT_MANAGER_CRD = "certificates.cert-manager.io"
CERT_MANAGER_CA_SECRET_NAME = "ca"
CA_CERT_FIELD = "ca.crt"

CA_GENERATOR_SERVICE_ACCOUNT = "ca-cert-generator"
CA_GENERATOR_ROLE = "ca-cert-generator-role"
CA_GENERATOR_ROLE_BINDING = "ca-cert-generator-role-binding"
CA_GENERATOR_JOB = "ca-cert-generation-job"
CA_GENERATOR_IMAGE = "mm4eche/che-cert-manager-ca-cert-generator:latest"

# Templates shipped with the package, used when no resources root is given
BUNDLED_RESOURCES = Path(__file__).parent.parent / "resources"

CERT_MANAGER_MANIFEST = Path("cert-manager", "cert-manager.yml")
CA_GENERATOR_ROLE_TEMPLATE = Path("cert-manager", "ca-cert-generator-role.yml")
CA_GENERATOR_ROLE_BINDING_TEMPLATE = Path(
    "cert-manager", "ca-cert-generator-role-binding.yml"
)
CLUSTER_ISSUER_TEMPLATE = Path("cert-manager", "cluster-issuer.yml")
CERTIFICATE_TEMPLATE = Path("cert-manager", "certificate.yml")


class ProvisioningConfig(pydantic.BaseModel):
    """Caller supplied configuration for a provisioning run."""

    model_config = pydantic.ConfigDict(frozen=True)

    resources: Path = BUNDLED_RESOURCES
    namespace: str
    # Only needed when requesting a certificate
    domain: str | None = None
    secret_name: str = "app-tls"
    issuer_name: str = "trustchain-cluster-issuer"
    ca_file_name: str = "trustchainCA.crt"
    generator_image: str = CA_GENERATOR_IMAGE

    @pydantic.field_validator(
        "namespace", "domain", "secret_name", "issuer_name", "ca_file_name"
    )
    @classmethod
    def _not_empty(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("must not be empty")
        return value

    @pydantic.field_validator("ca_file_name")
    @classmethod
    def _file_name_only(cls, value: str) -> str:
        if Path(value).name != value:
            raise ValueError("must be a file name, not a path")
        return value

    def resource_path(self, relative: Path) -> Path:
        """Locate a manifest under the resources root.

        Falls back to the bundled templates for manifests the resources root
        does not override.
        """
        path = self.resources / relative
        if not path.exists() and self.bundled_path(relative).exists():
            return self.bundled_path(relative)
        return path

    def bundled_path(self, relative: Path) -> Path:
        """Locate a manifest shipped with trustchain."""
        return BUNDLED_RESOURCES / relative
