"""Upstream model sources producing raw element trees."""

from bimtables.sources.ifc import ifc_to_raw_tree

__all__ = ["ifc_to_raw_tree"]
