"""Contains the version of tracedash.

Must be kept in sync with the `version` field in pyproject.toml.
"""

VERSION = "0.3.0"
