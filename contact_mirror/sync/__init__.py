"""
contact_mirror.sync - Synchronization module

Contains the contact model, JSON field mapping, the batch sync engine,
and the record hooks that trigger it.
"""
