# SPDX-License-Identifier: Apache-2.0

"""
Domain logic for land applications.

Pure functions and value types for intake validation, workflow decisions and
ledger statistics. Storage and network access live in the services package.
"""
