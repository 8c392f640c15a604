"""Main entry point when executing metquery as a package.

This allows running the package using python -m metquery.
"""

from metquery.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
