# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI exit codes.

These are the only exit codes pairharvest uses. PARTIAL_FAILURE means the
run completed, but at least one metadata file or program pair failed and
is listed in the report.
"""

SUCCESS: int = 0
USER_ERROR: int = 1
CONFIG_ERROR: int = 2
RUNTIME_ERROR: int = 3
PARTIAL_FAILURE: int = 4
