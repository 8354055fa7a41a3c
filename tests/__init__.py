"""Test package for the Aim Trainer.

The presence of this file allows pytest to discover tests in this
directory when running from the repository root.
"""
