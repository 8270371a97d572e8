"""Linux host metric collectors reading procfs and sysfs, with Prometheus text output."""

__version__ = "0.1.0"