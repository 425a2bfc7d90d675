"""eLibrary identity provisioning.

Turns students, staff members and librarians into login-capable accounts,
one at a time or in batches imported from delimited text files.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
