# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
pairharvest: a corpus builder for matched C and Rust program pairs.

Reads declarative metadata, validates and normalizes it, clones the
referenced repositories into a local cache and copies the declared source
files into one directory per program pair. Nothing downloaded is ever
built or executed.
"""

__version__ = "1.0.0"
