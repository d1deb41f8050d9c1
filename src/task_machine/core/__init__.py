"""Engine-facing ports and the model/key-naming plumbing."""
