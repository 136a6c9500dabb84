"""Reconciler core: key manager, storage policy engine, registry publisher."""
