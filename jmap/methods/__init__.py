"""
Method definitions.

Importing :mod:`jmap` registers the core methods and capabilities in the
default registries.
"""
