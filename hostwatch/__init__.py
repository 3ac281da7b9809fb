"""hostwatch - scheduled query execution and change detection for host instrumentation."""

__app_name__ = "hostwatch"
__version__ = "0.1.0"
