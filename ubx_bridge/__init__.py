"""Bridge for UBX framed byte streams from a serial GNSS receiver."""
