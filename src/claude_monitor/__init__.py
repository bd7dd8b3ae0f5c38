"""
Claude Monitor: a local daemon that tracks coding assistant sessions,
reaps crashed ones and streams every change to dashboard viewers.
"""

__version__ = "0.1.0"
