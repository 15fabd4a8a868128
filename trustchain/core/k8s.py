# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import enum
import logging
from pathlib import Path
from typing import Protocol

from lightkube import codecs
from lightkube.config import kubeconfig as l_kubeconfig
from lightkube.core import client as l_client
from lightkube.core.exceptions import ApiError, ConfigError
from lightkube.generic_resource import (
    create_global_resource,
    create_namespaced_resource,
)
from lightkube.models.batch_v1 import JobSpec
from lightkube.models.core_v1 import Container, PodSpec, PodTemplateSpec
from lightkube.models.meta_v1 import ObjectMeta
from lightkube.resources.apiextensions_v1 import CustomResourceDefinition
from lightkube.resources.batch_v1 import Job
from lightkube.resources.core_v1 import Namespace, Secret, ServiceAccount
from lightkube.resources.rbac_authorization_v1 import Role, RoleBinding
from lightkube.types import CascadeType

from trustchain.core.common import TrustChainException

LOG = logging.getLogger(__name__)

FIELD_MANAGER = "trustchain"
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409

ClusterIssuer = create_global_resource(
    "cert-manager.io", "v1", "ClusterIssuer", "clusterissuers"
)
Certificate = create_namespaced_resource(
    "cert-manager.io", "v1", "Certificate", "certificates"
)


class KubeClientError(TrustChainException):
    pass


class CreateOutcome(enum.Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already-exists"


class ClusterResourceClient(Protocol):
    """Cluster operations needed to provision the trust chain."""

    def namespace_exists(self, name: str) -> bool: ...

    def crd_exists(self, name: str) -> bool: ...

    def apply_manifest(self, path: Path, params: dict | None = None) -> None: ...

    def get_secret(self, name: str, namespace: str) -> dict[str, str] | None: ...

    def create_service_account(self, name: str, namespace: str) -> CreateOutcome: ...

    def create_role(self, template_path: Path, namespace: str) -> CreateOutcome: ...

    def create_role_binding(
        self, template_path: Path, namespace: str
    ) -> CreateOutcome: ...

    def create_job(
        self, name: str, image: str, service_account: str, namespace: str
    ) -> CreateOutcome: ...

    def delete_service_account(self, name: str, namespace: str) -> None: ...

    def delete_role(self, name: str, namespace: str) -> None: ...

    def delete_role_binding(self, name: str, namespace: str) -> None: ...

    def delete_job(self, name: str, namespace: str) -> None: ...

    def wait_job(self, name: str, namespace: str) -> bool: ...

    def cluster_issuer_exists(self, name: str) -> bool: ...

    def create_certificate_request(self, template_path: Path, params: dict) -> None: ...


def get_kube_client(
    kubeconfig: Path | None = None, namespace: str = "default"
) -> l_client.Client:
    """Build a lightkube client from a kubeconfig file or the environment."""
    try:
        if kubeconfig:
            config = l_kubeconfig.KubeConfig.from_file(kubeconfig)
        else:
            config = l_kubeconfig.KubeConfig.from_env()
    except (ConfigError, OSError) as e:
        LOG.debug("Failed to load kubeconfig", exc_info=True)
        raise KubeClientError(f"K8S kubeconfig not found: {e}") from e

    try:
        return l_client.Client(config, namespace, trust_env=False)
    except ConfigError as e:
        LOG.debug("Failed to create k8s client", exc_info=True)
        raise KubeClientError(f"Error creating k8s client: {e}") from e


def _is_not_found(error: ApiError) -> bool:
    return error.status.code == HTTP_NOT_FOUND


class KubeHelper:
    """ClusterResourceClient backed by a lightkube client."""

    def __init__(self, kube: l_client.Client):
        self.kube = kube

    def _exists(self, res, name: str, namespace: str | None = None) -> bool:
        try:
            self.kube.get(res, name, namespace=namespace)
        except ApiError as e:
            if _is_not_found(e):
                return False
            raise
        return True

    def _load(self, path: Path, params: dict | None = None) -> list:
        with path.open() as f:
            return codecs.load_all_yaml(f, context=params)

    def _create(self, obj, namespace: str) -> CreateOutcome:
        try:
            self.kube.create(obj, namespace=namespace)
        except ApiError as e:
            if e.status.code == HTTP_CONFLICT:
                LOG.debug(
                    f"{obj.kind} {obj.metadata.name} already exists in {namespace}"
                )
                return CreateOutcome.ALREADY_EXISTS
            raise
        return CreateOutcome.CREATED

    def _create_from_file(self, template_path: Path, namespace: str) -> CreateOutcome:
        outcome = CreateOutcome.ALREADY_EXISTS
        for obj in self._load(template_path, {"namespace": namespace}):
            if self._create(obj, namespace) == CreateOutcome.CREATED:
                outcome = CreateOutcome.CREATED
        return outcome

    def _delete(self, res, name: str, namespace: str, **kwargs) -> None:
        try:
            self.kube.delete(res, name, namespace=namespace, **kwargs)
        except ApiError as e:
            if _is_not_found(e):
                LOG.debug(f"{res.__name__} {name} not found in {namespace}")
                return
            raise

    def namespace_exists(self, name: str) -> bool:
        return self._exists(Namespace, name)

    def crd_exists(self, name: str) -> bool:
        return self._exists(CustomResourceDefinition, name)

    def cluster_issuer_exists(self, name: str) -> bool:
        return self._exists(ClusterIssuer, name)

    def apply_manifest(self, path: Path, params: dict | None = None) -> None:
        """Server side apply every object of a manifest."""
        for obj in self._load(path, params):
            LOG.debug(f"Applying {obj.kind} {obj.metadata.name}")
            self.kube.apply(obj, field_manager=FIELD_MANAGER, force=True)

    def get_secret(self, name: str, namespace: str) -> dict[str, str] | None:
        """Return the base64 encoded data of a secret, None if absent."""
        try:
            secret = self.kube.get(Secret, name, namespace=namespace)
        except ApiError as e:
            if _is_not_found(e):
                return None
            raise
        return secret.data or {}

    def create_service_account(self, name: str, namespace: str) -> CreateOutcome:
        account = ServiceAccount(metadata=ObjectMeta(name=name, namespace=namespace))
        return self._create(account, namespace)

    def create_role(self, template_path: Path, namespace: str) -> CreateOutcome:
        return self._create_from_file(template_path, namespace)

    def create_role_binding(
        self, template_path: Path, namespace: str
    ) -> CreateOutcome:
        return self._create_from_file(template_path, namespace)

    def create_job(
        self, name: str, image: str, service_account: str, namespace: str
    ) -> CreateOutcome:
        job = Job(
            metadata=ObjectMeta(name=name, namespace=namespace),
            spec=JobSpec(
                backoffLimit=0,
                template=PodTemplateSpec(
                    spec=PodSpec(
                        serviceAccountName=service_account,
                        restartPolicy="Never",
                        containers=[Container(name=name, image=image)],
                    )
                ),
            ),
        )
        return self._create(job, namespace)

    def wait_job(self, name: str, namespace: str) -> bool:
        """Block until the job completes or fails.

        :return: True if the job completed successfully
        """
        job = self.kube.wait(
            Job, name, for_conditions=("Complete", "Failed"), namespace=namespace
        )
        conditions = (job.status and job.status.conditions) or []
        return any(c.type == "Complete" and c.status == "True" for c in conditions)

    def delete_service_account(self, name: str, namespace: str) -> None:
        self._delete(ServiceAccount, name, namespace)

    def delete_role(self, name: str, namespace: str) -> None:
        self._delete(Role, name, namespace)

    def delete_role_binding(self, name: str, namespace: str) -> None:
        self._delete(RoleBinding, name, namespace)

    def delete_job(self, name: str, namespace: str) -> None:
        # Job pods are left behind unless propagation is requested
        self._delete(Job, name, namespace, cascade=CascadeType.BACKGROUND)

    def create_certificate_request(self, template_path: Path, params: dict) -> None:
        self.apply_manifest(template_path, params)
