"""
AI exposure knowledge base.

The pipeline subpackage turns the tables and text of "The Impact of
Generative AI on Employment" into a validated JSON knowledge base. The
service subpackage loads that artifact and answers occupation risk, search
and comparison queries with an in-process TTL cache.
"""

__version__ = "0.1.0"
