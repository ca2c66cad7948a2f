# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the SchoolOps catalog backend.

This package contains domain services that encapsulate business logic.

Domains:
    catalog: Catalog entitlements (visibility, creation, removal) for
        departments, subjects, fee types and classes.
"""
