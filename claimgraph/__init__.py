"""claimgraph - turn debate text into a canonical, content-addressed triple graph."""

__version__ = "0.1.0"
