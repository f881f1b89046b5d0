"""visiontester: extraction test bench for local vision models."""
