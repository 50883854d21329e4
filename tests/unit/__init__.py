"""Unit tests: no sockets, no sleeps longer than a fraction of a second."""
