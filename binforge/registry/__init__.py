"""Registry access: the HTTP client and resource names (PRNs)."""

from binforge.registry.client import RegistryClient
from binforge.registry.prn import PRN, PRNBuilder

__all__ = ["RegistryClient", "PRN", "PRNBuilder"]
