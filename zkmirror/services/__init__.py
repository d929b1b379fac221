"""
zkmirror Services

- Mirror Service - materialize, persist, snapshot and watch a ZooKeeper subtree
"""
