"""lfbuild: build orchestration for the library and test bundles."""

__version__ = "0.1.0"
