"""hostsetup — bootstrap a CaptainCore host from a bare Ubuntu machine."""

__version__ = "0.1.0"
