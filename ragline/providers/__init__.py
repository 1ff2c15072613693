"""Concrete adapters behind the interfaces in :mod:`ragline.interfaces`."""
