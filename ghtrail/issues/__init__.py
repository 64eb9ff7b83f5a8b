"""Issue aggregates, the reconciler and label timeline replay."""
