# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for eLibrary.

Domains:
    provisioning: Identity provisioning saga, credential reset, lifecycle
        and reconciliation.
    batch: Delimited-file import, per-row provisioning and reporting.
"""
