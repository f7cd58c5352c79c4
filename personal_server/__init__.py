"""personal-server - personal Kubernetes infrastructure CLI."""

__version__ = "0.1.0"
__author__ = "personal-server maintainers"
