#!/usr/bin/env python
"""
Django management utility for Lectora.

Besides the usual server and migration commands, this is the entry point
for the catalogue maintenance jobs (`autolink_chapters`,
`migrate_version_access`).
"""
import os
import sys


def main() -> None:
    """Run administrative tasks for the Lectora project.

    Defaults to development settings; deployments set
    DJANGO_SETTINGS_MODULE=config.settings.prod.
    """
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")
    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        # Provide a clear hint if Django is not installed in the environment.
        raise ImportError(
            "Django is not installed or not available on the PYTHONPATH."
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
