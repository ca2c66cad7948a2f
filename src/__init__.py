"""SchoolOps Catalog Backend.

Multi-tenant catalog entitlements for school organizations: departments,
subjects, fee types and classes that are either global or private to an
organization, and the enabled-lists that decide what each organization sees.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
