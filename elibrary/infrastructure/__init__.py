# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer for external service integrations.

This package contains adapters for:
- Account Service (credential administration over HTTP)
- Secret issuance (remote hashing endpoint, local bcrypt)
- Record store (PostgreSQL through SQLAlchemy async)
"""
