# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

"""Short lived cluster resources used to run a single privileged job."""

import contextlib
import logging
from pathlib import Path
from typing import Iterator

import pydantic

from trustchain.core.k8s import ClusterResourceClient, CreateOutcome

LOG = logging.getLogger(__name__)


class TransientResourceSet(pydantic.BaseModel):
    """Service account, role, role binding and job backing a one-shot job."""

    model_config = pydantic.ConfigDict(frozen=True)

    namespace: str
    service_account: str
    role: str
    role_template: Path
    role_binding: str
    role_binding_template: Path
    job: str
    image: str

    def create(self, client: ClusterResourceClient) -> dict[str, CreateOutcome]:
        """Create the resources and start the job.

        Objects left over by an interrupted run are reported as
        CreateOutcome.ALREADY_EXISTS rather than failing the creation.
        """
        # Creation order matches teardown order, a partially created set
        # from a previous run is torn down the same way.
        outcomes = {
            "service_account": client.create_service_account(
                self.service_account, self.namespace
            ),
            "role": client.create_role(self.role_template, self.namespace),
            "role_binding": client.create_role_binding(
                self.role_binding_template, self.namespace
            ),
            "job": client.create_job(
                self.job, self.image, self.service_account, self.namespace
            ),
        }
        for kind, outcome in outcomes.items():
            LOG.debug(f"Transient {kind} in {self.namespace}: {outcome.value}")
        return outcomes

    def teardown(self, client: ClusterResourceClient) -> None:
        """Delete every resource of the set, ignoring errors."""
        deletions = (
            (client.delete_service_account, self.service_account),
            (client.delete_role, self.role),
            (client.delete_role_binding, self.role_binding),
            (client.delete_job, self.job),
        )
        for delete, name in deletions:
            try:
                delete(name, self.namespace)
            except Exception as e:
                LOG.warning(f"Failed to clean up {name} in {self.namespace}: {e}")
                LOG.debug("Cleanup error", exc_info=True)


@contextlib.contextmanager
def provisioned(
    client: ClusterResourceClient, resources: TransientResourceSet
) -> Iterator[TransientResourceSet]:
    """Create the transient resources and always tear them down on exit."""
    try:
        resources.create(client)
        yield resources
    finally:
        resources.teardown(client)
