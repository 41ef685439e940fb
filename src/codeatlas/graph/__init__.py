"""Knowledge graph store.

Entities become nodes keyed `entity:{name}:{kind}`, relationships become typed
confidence-weighted edges, and content chunks hang off nodes. The SQLite
adapter is local-first and works offline on small machines.
"""
