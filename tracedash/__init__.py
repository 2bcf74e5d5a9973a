"""Filter compilation and metric queries for the tracedash dashboard."""

from tracedash import version

__version__ = version.VERSION
