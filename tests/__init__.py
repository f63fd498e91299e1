"""Unit tests for the paratest harness."""
