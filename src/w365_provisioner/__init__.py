"""Windows 365 Cloud PC provisioning over Microsoft Graph.

Creates or reuses the Entra ID security groups, Cloud PC user setting and
provisioning policy of a deployment, merges their assignments, and tears the
same resources down again by display-name prefix.
"""

__version__ = "0.1.0"
