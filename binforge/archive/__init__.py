"""Bundle archives: the container codec plus registry push and pull.

The archive is self-describing: its ``bundle.json`` alone is enough to
rebuild the artifact -> version -> binary -> bundle graph.
"""
