# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import click

from trustchain import log
from trustchain.commands import provision as provision_cmds

# Update the help options to allow -h in addition to --help for
# triggering the help for various commands
CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])


@click.group("trustchain", context_settings=CONTEXT_SETTINGS)
@click.option("-v", "--verbose", is_flag=True, help="Print debug logs to console.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Provision self-signed TLS certificates on Kubernetes.

    trustchain relies on cert-manager to issue certificates signed by a CA
    generated inside the cluster.
    """
    logfile = log.prepare_logfile(log.logs_dir())
    log.setup_root_logging(logfile, verbose)


def main():
    cli.add_command(provision_cmds.provision)
    cli.add_command(provision_cmds.export_ca)
    cli(obj={})


if __name__ == "__main__":
    main()
