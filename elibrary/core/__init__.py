# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core application infrastructure for eLibrary.

Subpackages:
    config: Pydantic-based settings loaded from environment variables.
"""
