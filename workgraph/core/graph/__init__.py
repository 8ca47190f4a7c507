"""DAG engine.

`ProjectGraph` owns every node and edge. Mutations are checked incrementally
(an edge that would close a cycle is rejected before it is stored); the load
path inserts raw and validates the whole graph once.
"""
