"""
contact_mirror - Mirror local Contact records against a remote user directory.

Inbound sync copies remote users onto local contacts when they are created;
outbound sync pushes local contacts to the remote service when they change.
"""

__version__ = "0.1.0"
