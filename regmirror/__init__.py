"""regmirror: repository discovery for container registry mirroring."""

__version__ = "0.1.0"
