# SPDX-License-Identifier: Apache-2.0

"""
Land services API: citizen land applications, the admin approval workflow,
and ledger statistics reconciliation.
"""

__version__ = "1.0.0"
