"""Data subject rights: access, erasure, correction, portability, grievance."""
