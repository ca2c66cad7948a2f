# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database migrations package.

This package contains the Alembic environment and the revisions of the
school database (organizations, catalog entities, enabled-lists and the
tables that reference catalog entities).
"""
