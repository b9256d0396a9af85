"""Film Identity.

Entity resolution and safe-merge tooling for the people (directors,
actors, music directors) referenced across a movie collection.
"""

__version__ = "0.1.0"
