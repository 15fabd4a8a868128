# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

"""Trustchain.

Provision a self-signed TLS trust chain for a cluster hosted application
using cert-manager.
"""
